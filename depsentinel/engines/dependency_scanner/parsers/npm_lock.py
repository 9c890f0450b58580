"""Parser for npm package-lock.json / npm-shrinkwrap.json.

Lockfile versions:
  - v1 (npm 5-6): nested ``dependencies`` tree only
  - v2 (npm 7-8): flat ``packages`` map plus the v1 tree
  - v3 (npm 9+): flat ``packages`` map only
"""

from __future__ import annotations

import json
from typing import Any

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector
from depsentinel.errors import LockfileParseError

_NODE_MODULES = "node_modules"


def _name_from_v3_path(path: str) -> str | None:
    """Package name from a v3 ``packages`` key, or None for keys to skip.

    ``node_modules/express/node_modules/@types/node`` -> ``@types/node``
    """
    segments = path.split("/")
    if path.startswith(f"{_NODE_MODULES}/"):
        last = max(i for i, seg in enumerate(segments) if seg == _NODE_MODULES)
        return "/".join(segments[last + 1 :])
    if path.startswith("packages/"):
        # workspace member
        return None
    return segments[-1]


def _collect_tree(tree: dict[str, Any], out: DependencyCollector) -> None:
    for name, node in tree.items():
        if not isinstance(node, dict):
            continue
        version = node.get("version")
        if version:
            out.add(name, str(version))
        nested = node.get("dependencies")
        if isinstance(nested, dict):
            _collect_tree(nested, out)


def parse_npm_lock(content: str, include_dev: bool = False) -> list[Dependency]:
    """Parse package-lock.json text into resolved dependencies.

    ``include_dev`` is accepted for signature parity; npm lockfiles are
    scanned in full.
    """
    try:
        lock = json.loads(content)
    except json.JSONDecodeError as exc:
        raise LockfileParseError("package-lock.json", str(exc)) from exc
    if not isinstance(lock, dict):
        raise LockfileParseError("package-lock.json", "top-level value is not an object")

    out = DependencyCollector("npm")
    lockfile_version = lock.get("lockfileVersion")
    packages = lock.get("packages")

    if lockfile_version == 3 and isinstance(packages, dict):
        for path, pkg in packages.items():
            if not path:
                continue
            name = _name_from_v3_path(path)
            if not name or not isinstance(pkg, dict) or not pkg.get("version"):
                continue
            out.add(name, str(pkg["version"]))

    elif lockfile_version in (1, 2):
        if isinstance(packages, dict):
            for path, pkg in packages.items():
                if not path or not isinstance(pkg, dict) or not pkg.get("version"):
                    continue
                out.add(path.split("/")[-1], str(pkg["version"]))

        tree = lock.get("dependencies")
        if isinstance(tree, dict):
            _collect_tree(tree, out)

    return out.result()
