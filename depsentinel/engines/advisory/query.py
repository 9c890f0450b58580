"""Bounded-concurrency advisory lookups across both sources."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import TypeVar

import structlog

from depsentinel.engines.advisory.ghsa_client import GHSAClient
from depsentinel.engines.advisory.merge import merge_advisories
from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.advisory.osv_client import MAX_BATCH_SIZE, OSVClient
from depsentinel.engines.dependency_scanner.models import Dependency

log = structlog.get_logger("depsentinel.engine")

DEFAULT_CONCURRENCY = 10

T = TypeVar("T")


def chunked(items: Sequence[T], size: int = MAX_BATCH_SIZE) -> list[list[T]]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


@dataclass
class QueryResult:
    """Per-dependency advisories from each source, aligned with the input."""

    osv: list[list[UnifiedAdvisory]]
    ghsa: list[list[UnifiedAdvisory]] | None


class AdvisoryQueryEngine:
    """Run OSV batches and GHSA per-package lookups on one bounded pool.

    At most *concurrency* requests are in flight at once. Every lookup runs
    to completion even when a sibling fails; the first failure is raised
    afterwards so a scan never reports a partial advisory set.
    """

    def __init__(
        self,
        osv: OSVClient,
        ghsa: GHSAClient | None = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._osv = osv
        self._ghsa = ghsa
        self._concurrency = concurrency

    async def query(self, deps: Sequence[Dependency]) -> QueryResult:
        deps = list(deps)
        if not deps:
            return QueryResult(osv=[], ghsa=[] if self._ghsa is not None else None)

        # A missing token fails the scan before any request goes out.
        if self._ghsa is not None:
            await self._ghsa.ensure_credentials()

        sem = asyncio.Semaphore(self._concurrency)

        async def _bounded(coro: Awaitable[T]) -> T:
            async with sem:
                return await coro

        batches = chunked(deps)
        osv_tasks = [_bounded(self._osv.query_dependencies(batch)) for batch in batches]
        ghsa_tasks = (
            [_bounded(self._ghsa.query_dependency(dep)) for dep in deps]
            if self._ghsa is not None
            else []
        )

        log.info(
            "advisory.query_start",
            deps=len(deps),
            osv_batches=len(batches),
            ghsa_queries=len(ghsa_tasks),
            concurrency=self._concurrency,
        )
        outcomes = await asyncio.gather(*osv_tasks, *ghsa_tasks, return_exceptions=True)

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            log.error("advisory.query_failed", failed=len(failures), error=str(failures[0]))
            raise failures[0]

        osv_outcomes = outcomes[: len(osv_tasks)]
        osv: list[list[UnifiedAdvisory]] = []
        for batch_result in osv_outcomes:
            osv.extend(batch_result)  # type: ignore[arg-type]

        ghsa: list[list[UnifiedAdvisory]] | None = None
        if self._ghsa is not None:
            ghsa = [list(r) for r in outcomes[len(osv_tasks) :]]  # type: ignore[arg-type]

        return QueryResult(osv=osv, ghsa=ghsa)

    async def scan(self, deps: Sequence[Dependency]) -> dict[str, list[UnifiedAdvisory]]:
        """Query both sources and merge into ``name@version`` -> advisories."""
        result = await self.query(deps)
        return merge_advisories(list(deps), result.osv, result.ghsa)
