"""Async client for the OSV.dev batch vulnerability index."""

from __future__ import annotations

import os
from typing import Any

import httpx
import structlog

from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.advisory.retry import DEFAULT_POLICY, RetryPolicy, request_with_retry
from depsentinel.engines.dependency_scanner.models import Dependency
from depsentinel.errors import AdvisorySourceError

log = structlog.get_logger("depsentinel.engine")

MAX_BATCH_SIZE = 50

_SOURCE = "osv"
_DEFAULT_BASE_URL = "https://api.osv.dev"


def _dicts(value: Any) -> list[dict[str, Any]]:
    """Dict entries of a JSON array; anything else yields nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _severity(vuln: dict[str, Any]) -> str:
    db_specific = vuln.get("database_specific") or {}
    if isinstance(db_specific, dict) and db_specific.get("severity"):
        return str(db_specific["severity"]).upper()

    scores = vuln.get("severity") or []
    if scores and isinstance(scores[0], dict) and scores[0].get("score"):
        try:
            score = float(scores[0]["score"])
        except (ValueError, TypeError):
            # CVSS vector strings carry no numeric base score
            return "UNKNOWN"
        if score >= 9.0:
            return "CRITICAL"
        if score >= 7.0:
            return "HIGH"
        if score >= 4.0:
            return "MEDIUM"
        return "LOW"
    return "UNKNOWN"


def _cve_ids(vuln: dict[str, Any]) -> list[str]:
    ids: list[str] = []
    aliases = vuln.get("aliases")
    candidates = [vuln.get("id")] + (aliases if isinstance(aliases, list) else [])
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.startswith("CVE-") and candidate not in ids:
            ids.append(candidate)
    return ids


def _first_patched(vuln: dict[str, Any]) -> str | None:
    for affected in _dicts(vuln.get("affected")):
        for rng in _dicts(affected.get("ranges")):
            for event in _dicts(rng.get("events")):
                if event.get("fixed"):
                    return str(event["fixed"])
    return None


def osv_to_unified(vuln: dict[str, Any]) -> UnifiedAdvisory:
    """Normalize one OSV vulnerability record."""
    if not isinstance(vuln, dict) or not vuln.get("id"):
        raise AdvisorySourceError(_SOURCE, "vulnerability record without an id")
    return UnifiedAdvisory(
        id=str(vuln["id"]),
        source="osv",
        severity=_severity(vuln),
        summary=vuln.get("summary"),
        details=vuln.get("details"),
        references=[r["url"] for r in _dicts(vuln.get("references")) if r.get("url")],
        first_patched_version=_first_patched(vuln),
        cve_ids=_cve_ids(vuln),
    )


def build_query(dep: Dependency) -> dict[str, Any]:
    return {"package": {"ecosystem": dep.ecosystem, "name": dep.name}, "version": dep.version}


class OSVClient:
    """Thin async wrapper around ``POST /v1/querybatch``."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy = DEFAULT_POLICY,
    ) -> None:
        resolved = base_url or os.environ.get("DEPSENTINEL_OSV_URL", _DEFAULT_BASE_URL)
        self._url = resolved.rstrip("/") + "/v1/querybatch"
        self._policy = policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(headers={"Content-Type": "application/json"})

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> OSVClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def query_batch(self, queries: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
        """Return the raw ``vulns`` list for each query, in query order.

        At most :data:`MAX_BATCH_SIZE` queries per call; larger batches are
        rejected before any request is sent.
        """
        if len(queries) > MAX_BATCH_SIZE:
            raise AdvisorySourceError(
                _SOURCE, f"batch size {len(queries)} exceeds maximum of {MAX_BATCH_SIZE}"
            )
        if not queries:
            return []

        resp = await request_with_retry(
            self._client,
            "POST",
            self._url,
            source=_SOURCE,
            policy=self._policy,
            json={"queries": queries},
        )
        try:
            body = resp.json()
        except ValueError as exc:
            raise AdvisorySourceError(_SOURCE, f"malformed response body: {exc}") from exc

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list) or len(results) != len(queries):
            raise AdvisorySourceError(
                _SOURCE, f"expected {len(queries)} results, got malformed response"
            )

        out: list[list[dict[str, Any]]] = []
        for result in results:
            if result is None:
                out.append([])
                continue
            if not isinstance(result, dict):
                raise AdvisorySourceError(
                    _SOURCE, "malformed response body: result is not an object"
                )
            vulns = result.get("vulns") or []
            if not isinstance(vulns, list) or not all(isinstance(v, dict) for v in vulns):
                raise AdvisorySourceError(
                    _SOURCE, "malformed response body: vulns is not a list of objects"
                )
            out.append(list(vulns))
        return out

    async def query_dependencies(self, deps: list[Dependency]) -> list[list[UnifiedAdvisory]]:
        """Query one batch of dependencies and normalize the advisories."""
        raw = await self.query_batch([build_query(dep) for dep in deps])
        log.debug("osv.batch_done", size=len(deps))
        return [[osv_to_unified(vuln) for vuln in vulns] for vulns in raw]
