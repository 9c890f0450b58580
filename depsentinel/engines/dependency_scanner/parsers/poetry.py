"""Parsers for Poetry projects: poetry.lock and pyproject.toml [tool.poetry]."""

from __future__ import annotations

import re
import sys
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector
from depsentinel.errors import LockfileParseError

_PACKAGE_DELIM_RE = re.compile(r"^\[\[package\]\]\s*$", re.MULTILINE)
_NAME_RE = re.compile(r'^name\s*=\s*"([^"]+)"', re.MULTILINE)
_VERSION_RE = re.compile(r'^version\s*=\s*"([^"]+)"', re.MULTILINE)
_CATEGORY_RE = re.compile(r'^category\s*=\s*"([^"]+)"', re.MULTILINE)


def parse_poetry_lock(content: str, include_dev: bool = False) -> list[Dependency]:
    """Parse poetry.lock ``[[package]]`` sections.

    Entries with ``category = "dev"`` (Poetry < 1.5 lockfiles) are dropped
    unless *include_dev* is set.
    """
    out = DependencyCollector("PyPI")

    blocks = _PACKAGE_DELIM_RE.split(content)
    # Anything before the first delimiter is not a package
    for block in blocks[1:]:
        name = _NAME_RE.search(block)
        version = _VERSION_RE.search(block)
        if not name or not version:
            continue
        category = _CATEGORY_RE.search(block)
        if category and category.group(1) == "dev" and not include_dev:
            continue
        out.add(name.group(1), version.group(1))

    return out.result()


def _version_of(spec: Any) -> str | None:
    if isinstance(spec, str):
        return spec
    if isinstance(spec, dict):
        version = spec.get("version")
        return str(version) if version else None
    return None


def _table(data: dict[str, Any], *path: str) -> dict[str, Any]:
    node: Any = data
    for key in path:
        if not isinstance(node, dict):
            return {}
        node = node.get(key, {})
    return node if isinstance(node, dict) else {}


def parse_poetry_pyproject(content: str, include_dev: bool = False) -> list[Dependency]:
    """Declared dependencies from a Poetry pyproject.toml (manifest fallback)."""
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileParseError("pyproject.toml", str(exc)) from exc

    sections = [_table(data, "tool", "poetry", "dependencies")]
    if include_dev:
        sections.append(_table(data, "tool", "poetry", "dev-dependencies"))
        sections.append(_table(data, "tool", "poetry", "group", "dev", "dependencies"))

    out = DependencyCollector("PyPI")
    for section in sections:
        for name, spec in section.items():
            if name == "python":
                continue
            version = _version_of(spec)
            if version is None:
                continue
            out.add(name, version)

    return out.result()
