"""Parser for pip requirements.txt files."""

from __future__ import annotations

import re

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector

# name, optional [extras], then everything up to an inline comment
_REQ_RE = re.compile(
    r"^([A-Za-z0-9_-][A-Za-z0-9._-]*)"  # package name
    r"(?:\[[^\]]+\])?"  # optional extras
    r"(.*?)"  # version specifiers
    r"(?:\s*#.*)?$",  # inline comment
)

_EXACT_VERSION_RE = re.compile(r"==\s*([0-9][A-Za-z0-9._+!-]*)")


def parse_requirements(content: str, include_dev: bool = False) -> list[Dependency]:
    """Parse requirements.txt lines.

    ``name==1.0`` resolves to ``1.0``; any other specifier is kept verbatim
    and a bare name becomes ``*``. Names are lower-cased as PyPI does.
    """
    out = DependencyCollector("PyPI")

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("-e") or "://" in line:
            continue
        if line.startswith("-"):
            continue

        m = _REQ_RE.match(line)
        if not m:
            continue

        name = m.group(1).lower()
        # Strip environment markers (everything after ";")
        spec = m.group(2).split(";", 1)[0].strip()
        exact = _EXACT_VERSION_RE.search(spec)
        version = exact.group(1) if exact else (spec or "*")
        out.add(name, version)

    return out.result()
