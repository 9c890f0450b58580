"""Declared dependencies from package.json (manifest-only fallback)."""

from __future__ import annotations

import json

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector
from depsentinel.errors import LockfileParseError


def parse_package_json(content: str, include_dev: bool = False) -> list[Dependency]:
    try:
        pkg = json.loads(content)
    except json.JSONDecodeError as exc:
        raise LockfileParseError("package.json", str(exc)) from exc
    if not isinstance(pkg, dict):
        raise LockfileParseError("package.json", "top-level value is not an object")

    sections = ["dependencies"]
    if include_dev:
        sections.append("devDependencies")

    out = DependencyCollector("npm")
    for section in sections:
        declared = pkg.get(section) or {}
        if not isinstance(declared, dict):
            continue
        for name, version in declared.items():
            out.add(name, str(version))

    return out.result()


def read_package_manager_field(content: str) -> str | None:
    """Return the ``packageManager`` field (e.g. ``pnpm@9.1.0``) if present."""
    try:
        pkg = json.loads(content)
    except json.JSONDecodeError:
        return None
    if not isinstance(pkg, dict):
        return None
    value = pkg.get("packageManager")
    return value if isinstance(value, str) else None
