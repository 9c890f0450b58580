"""Cross-source advisory merge."""

from __future__ import annotations

from collections.abc import Sequence

from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.dependency_scanner.models import Dependency


def dedupe_advisories(advisories: Sequence[UnifiedAdvisory]) -> list[UnifiedAdvisory]:
    """Keep the first record per advisory id, in first-seen order.

    Callers pass OSV records before GHSA records, so an id reported by both
    sources keeps the OSV record. Advisories are never correlated across
    different ids, even when they share a CVE alias.
    """
    by_id: dict[str, UnifiedAdvisory] = {}
    for advisory in advisories:
        by_id.setdefault(advisory.id, advisory)
    return list(by_id.values())


def merge_advisories(
    deps: Sequence[Dependency],
    osv_results: Sequence[Sequence[UnifiedAdvisory]],
    ghsa_results: Sequence[Sequence[UnifiedAdvisory]] | None = None,
) -> dict[str, list[UnifiedAdvisory]]:
    """Build the ``name@version`` -> advisories map in dependency order.

    ``osv_results[i]`` and ``ghsa_results[i]`` belong to ``deps[i]``.
    Packages without advisories are omitted.
    """
    if len(osv_results) != len(deps):
        raise ValueError("osv_results must align with deps")
    if ghsa_results is not None and len(ghsa_results) != len(deps):
        raise ValueError("ghsa_results must align with deps")

    merged: dict[str, list[UnifiedAdvisory]] = {}
    for i, dep in enumerate(deps):
        combined = list(osv_results[i])
        if ghsa_results is not None:
            combined.extend(ghsa_results[i])
        if not combined:
            continue
        existing = merged.get(dep.key, [])
        merged[dep.key] = dedupe_advisories(existing + combined)
    return merged
