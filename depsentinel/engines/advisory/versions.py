"""Evaluate GitHub ``vulnerableVersionRange`` expressions.

Ranges are comma-separated clauses such as ``>= 1.0.0, < 1.2.3`` or
``= 2.0.1``. Anything that cannot be evaluated (declared ranges like
``^4.17.0``, non-PEP 440 versions) is treated as affected so an advisory
is never dropped on a parsing guess.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable

from packaging.version import InvalidVersion, Version

_CLAUSE_RE = re.compile(r"^(>=|<=|>|<|=)\s*(\S+)$")

_OPS: dict[str, Callable[[Version, Version], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "=": operator.eq,
}


def _parse_version(raw: str) -> Version | None:
    raw = raw.strip()
    if raw.startswith("v"):
        raw = raw[1:]
    try:
        return Version(raw)
    except InvalidVersion:
        return None


def is_version_in_range(version: str, vulnerable_range: str) -> bool:
    current = _parse_version(version)
    if current is None:
        return True

    for clause in vulnerable_range.split(","):
        clause = clause.strip()
        if not clause:
            continue
        m = _CLAUSE_RE.match(clause)
        if not m:
            return True
        bound = _parse_version(m.group(2))
        if bound is None:
            return True
        if not _OPS[m.group(1)](current, bound):
            return False
    return True
