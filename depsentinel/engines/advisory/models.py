"""Data models for the advisory engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

AdvisorySource = Literal["osv", "ghsa"]


@dataclass(frozen=True)
class UnifiedAdvisory:
    """An advisory normalized from either source into one shape."""

    id: str
    source: AdvisorySource
    severity: str
    summary: str | None = None
    details: str | None = None
    references: list[str] = field(default_factory=list)
    first_patched_version: str | None = None
    cve_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GhsaVulnerableRange:
    package_name: str
    ecosystem: str
    vulnerable_version_range: str
    first_patched_version: str | None = None


@dataclass
class GhsaAdvisory:
    """One GitHub advisory with every affected package/range it lists."""

    ghsa_id: str
    summary: str | None
    description: str | None
    severity: str
    references: list[str] = field(default_factory=list)
    identifiers: list[str] = field(default_factory=list)
    vulnerabilities: list[GhsaVulnerableRange] = field(default_factory=list)
