"""Parsers for yarn.lock — classic (v1 text format) and berry (v2+ YAML)."""

from __future__ import annotations

import re

import yaml

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector
from depsentinel.errors import LockfileParseError

_SKIP_PROTOCOLS = ("file:", "git+", "github:", "git:")

# "  version "1.2.3"" or "  version 1.2.3"
_CLASSIC_VERSION_RE = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?\s*$')

# name@npm:range; the name is the shortest prefix (scoped names contain "@")
_BERRY_KEY_RE = re.compile(r"^(.+?)@npm:(.+)$")


def is_berry_lockfile(content: str) -> bool:
    return "__metadata:" in content


def _has_skipped_protocol(key: str) -> bool:
    return any(proto in key for proto in _SKIP_PROTOCOLS)


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _classic_entries(content: str) -> list[tuple[str, str | None]]:
    """Return ``(raw_key, version)`` for every top-level lockfile entry."""
    entries: list[tuple[str, str | None]] = []
    current_key: str | None = None
    current_version: str | None = None

    for lineno, raw_line in enumerate(content.splitlines(), start=1):
        if not raw_line.strip() or raw_line.lstrip().startswith("#"):
            continue

        if not raw_line[0].isspace():
            if not raw_line.rstrip().endswith(":"):
                raise LockfileParseError("yarn.lock", f"unexpected line {lineno}: {raw_line!r}")
            if current_key is not None:
                entries.append((current_key, current_version))
            current_key = raw_line.rstrip()[:-1]
            current_version = None
            continue

        if current_key is None:
            raise LockfileParseError("yarn.lock", f"indented line {lineno} outside an entry")
        if current_version is None:
            m = _CLASSIC_VERSION_RE.match(raw_line)
            # Only the entry's own 2-space "version" field, not nested maps.
            if m and raw_line.startswith("  ") and not raw_line.startswith("   "):
                current_version = m.group(1)

    if current_key is not None:
        entries.append((current_key, current_version))
    return entries


def parse_yarn_classic(content: str, include_dev: bool = False) -> list[Dependency]:
    out = DependencyCollector("npm")

    for raw_key, version in _classic_entries(content):
        if _has_skipped_protocol(raw_key):
            continue
        # "a@^1.0.0", "a@^1.1.0": first specifier is canonical
        first = _strip_quotes(raw_key.split(",")[0])
        at = first.rfind("@")
        if at <= 0:
            continue
        name = first[:at]
        if not version:
            continue
        out.add(name, version)

    return out.result()


def parse_yarn_berry(content: str, include_dev: bool = False) -> list[Dependency]:
    try:
        lock = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise LockfileParseError("yarn.lock", str(exc)) from exc

    out = DependencyCollector("npm")
    if not isinstance(lock, dict):
        return out.result()

    for key, record in lock.items():
        key = str(key)
        if key == "__metadata" or _has_skipped_protocol(key):
            continue
        if not isinstance(record, dict):
            continue

        # "a@npm:^1.0.0, a@npm:^1.1.0": first specifier is canonical
        m = _BERRY_KEY_RE.match(_strip_quotes(key.split(",")[0]))
        if not m:
            continue
        name = _strip_quotes(m.group(1))
        version = str(record.get("version") or m.group(2))
        if not version:
            continue
        out.add(name, version)

    return out.result()


def parse_yarn_lock(content: str, include_dev: bool = False) -> list[Dependency]:
    """Pick the classic or berry parser from the lockfile content."""
    if is_berry_lockfile(content):
        return parse_yarn_berry(content, include_dev)
    return parse_yarn_classic(content, include_dev)
