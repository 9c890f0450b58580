"""Parsers for Go go.mod and go.sum files."""

from __future__ import annotations

import re

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector

# require ( ... ); body captured lazily so consecutive blocks stay separate
_REQUIRE_BLOCK_RE = re.compile(r"require\s*\(([\s\S]*?)\)")

# Inside require block: github.com/foo/bar v1.2.3 // indirect
_BLOCK_LINE_RE = re.compile(r"^(\S+)\s+(\S+)(?:\s+//\s*(.*))?$")

# Single require: require github.com/foo/bar v1.2.3
_SINGLE_RE = re.compile(
    r"^[ \t]*require[ \t]+(\S+)[ \t]+(\S+)(?:[ \t]+//[ \t]*(.*))?", re.MULTILINE
)


def _strip_v(version: str) -> str:
    return version[1:] if version.startswith("v") else version


def parse_go_mod(content: str, include_dev: bool = False) -> list[Dependency]:
    """Parse go.mod require directives.

    ``// indirect`` requirements are transitive and only kept when
    *include_dev* is set.
    """
    out = DependencyCollector("Go")

    for block in _REQUIRE_BLOCK_RE.finditer(content):
        for raw_line in block.group(1).splitlines():
            line = raw_line.strip()
            if not line or line.startswith("//"):
                continue
            m = _BLOCK_LINE_RE.match(line)
            if not m:
                continue
            module, version, comment = m.groups()
            if comment and "indirect" in comment and not include_dev:
                continue
            out.add(module, _strip_v(version))

    remaining = _REQUIRE_BLOCK_RE.sub("", content)
    for m in _SINGLE_RE.finditer(remaining):
        module, version, comment = m.groups()
        if comment and "indirect" in comment and not include_dev:
            continue
        out.add(module, _strip_v(version))

    return out.result()


def parse_go_sum(content: str, include_dev: bool = False) -> list[Dependency]:
    """Parse go.sum checksum lines into resolved module versions.

    Format: ``module version h1:hash``. Lines whose version ends in
    ``/go.mod`` only checksum the module's go.mod file and are skipped.
    """
    out = DependencyCollector("Go")

    for raw_line in content.splitlines():
        parts = raw_line.split()
        if len(parts) < 2:
            continue
        module, version = parts[0], parts[1]
        if version.endswith("/go.mod"):
            continue
        out.add(module, _strip_v(version))

    return out.result()
