"""Async client for the GitHub Security Advisory GraphQL API."""

from __future__ import annotations

import os
import re
from typing import Any

import httpx
import structlog

from depsentinel.engines.advisory.credentials import CredentialCache, default_credentials
from depsentinel.engines.advisory.models import GhsaAdvisory, GhsaVulnerableRange, UnifiedAdvisory
from depsentinel.engines.advisory.retry import DEFAULT_POLICY, RetryPolicy, request_with_retry
from depsentinel.engines.advisory.versions import is_version_in_range
from depsentinel.engines.dependency_scanner.models import Dependency
from depsentinel.errors import AdvisorySourceError

log = structlog.get_logger("depsentinel.engine")

_SOURCE = "ghsa"
_DEFAULT_URL = "https://api.github.com/graphql"
_PAGE_SIZE = 100
_DEFAULT_MAX_PAGES = 10

_CVE_RE = re.compile(r"CVE-\d{4}-\d{4,}")

_ECOSYSTEM_MAP = {
    "npm": "NPM",
    "PyPI": "PIP",
    "Go": "GO",
    "Maven": "MAVEN",
    "RubyGems": "RUBYGEMS",
    "NuGet": "NUGET",
    "Packagist": "COMPOSER",
    "crates.io": "RUST",
}

QUERY = """
query($ecosystem: SecurityAdvisoryEcosystem!, $package: String!, $first: Int!, $after: String) {
  securityVulnerabilities(first: $first, after: $after, ecosystem: $ecosystem, package: $package) {
    nodes {
      advisory {
        ghsaId
        summary
        description
        severity
        identifiers { type value }
        references { url }
      }
      package { name ecosystem }
      vulnerableVersionRange
      firstPatchedVersion { identifier }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""


def to_ghsa_ecosystem(ecosystem: str) -> str:
    return _ECOSYSTEM_MAP.get(ecosystem, ecosystem.upper())


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def group_by_advisory(nodes: list[dict[str, Any]]) -> list[GhsaAdvisory]:
    """Group affected-package nodes by ``ghsaId`` in first-seen order.

    Raises :class:`AdvisorySourceError` when a node is not an object.
    """
    by_id: dict[str, GhsaAdvisory] = {}
    for node in nodes:
        if not isinstance(node, dict):
            raise AdvisorySourceError(_SOURCE, "malformed response body: node is not an object")
        adv = _obj(node.get("advisory"))
        ghsa_id = adv.get("ghsaId")
        if not ghsa_id or not isinstance(ghsa_id, str):
            continue
        advisory = by_id.get(ghsa_id)
        if advisory is None:
            advisory = GhsaAdvisory(
                ghsa_id=ghsa_id,
                summary=adv.get("summary"),
                description=adv.get("description"),
                severity=str(adv.get("severity") or "UNKNOWN"),
                references=[r["url"] for r in _dicts(adv.get("references")) if r.get("url")],
                identifiers=[
                    i["value"]
                    for i in _dicts(adv.get("identifiers"))
                    if i.get("type") == "CVE" and i.get("value")
                ],
            )
            by_id[ghsa_id] = advisory
        pkg = _obj(node.get("package"))
        patched = _obj(node.get("firstPatchedVersion"))
        advisory.vulnerabilities.append(
            GhsaVulnerableRange(
                package_name=str(pkg.get("name") or ""),
                ecosystem=str(pkg.get("ecosystem") or ""),
                vulnerable_version_range=str(node.get("vulnerableVersionRange") or ""),
                first_patched_version=patched.get("identifier"),
            )
        )
    return list(by_id.values())


def _cve_ids(advisory: GhsaAdvisory) -> list[str]:
    ids: list[str] = list(dict.fromkeys(advisory.identifiers))
    text = " ".join(
        [advisory.ghsa_id, advisory.summary or "", advisory.description or "", *advisory.references]
    )
    for match in _CVE_RE.findall(text):
        if match not in ids:
            ids.append(match)
    return ids


def ghsa_to_unified(advisory: GhsaAdvisory, version: str) -> UnifiedAdvisory | None:
    """Normalize *advisory* for a dependency at *version*, or None if unaffected."""
    affected = [
        v
        for v in advisory.vulnerabilities
        if is_version_in_range(version, v.vulnerable_version_range)
    ]
    if not affected:
        return None
    return UnifiedAdvisory(
        id=advisory.ghsa_id,
        source="ghsa",
        severity=advisory.severity,
        summary=advisory.summary,
        details=advisory.description,
        references=list(advisory.references),
        first_patched_version=affected[0].first_patched_version,
        cve_ids=_cve_ids(advisory),
    )


class GHSAClient:
    """Per-package advisory lookups against the GitHub GraphQL endpoint."""

    def __init__(
        self,
        url: str | None = None,
        *,
        credentials: CredentialCache | None = None,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy = DEFAULT_POLICY,
        max_pages: int = _DEFAULT_MAX_PAGES,
    ) -> None:
        self._url = url or os.environ.get("DEPSENTINEL_GHSA_URL", _DEFAULT_URL)
        self._credentials = credentials or default_credentials
        self._policy = policy
        self._max_pages = max_pages
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> GHSAClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def ensure_credentials(self) -> None:
        """Resolve the bearer token up front; raises CredentialMissing."""
        await self._credentials.get_token()

    async def query_package(self, ecosystem: str, package: str) -> list[GhsaAdvisory]:
        """Every advisory listing *package*, following GraphQL pagination.

        The token is resolved before the first request; a missing token
        raises :class:`~depsentinel.errors.CredentialMissing`.
        """
        token = await self._credentials.get_token()
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        variables: dict[str, Any] = {
            "ecosystem": to_ghsa_ecosystem(ecosystem),
            "package": package,
            "first": _PAGE_SIZE,
            "after": None,
        }

        nodes: list[dict[str, Any]] = []
        for page in range(self._max_pages):
            data = await self._post(headers, variables)
            vulns = _obj(data.get("data")).get("securityVulnerabilities")
            if not isinstance(vulns, dict):
                raise AdvisorySourceError(_SOURCE, "response missing securityVulnerabilities")
            page_nodes = vulns.get("nodes") or []
            if not isinstance(page_nodes, list):
                raise AdvisorySourceError(_SOURCE, "malformed response body: nodes is not a list")
            nodes.extend(page_nodes)

            page_info = _obj(vulns.get("pageInfo"))
            if not page_info.get("hasNextPage") or not page_info.get("endCursor"):
                break
            variables["after"] = page_info["endCursor"]
        else:
            log.warning("ghsa.page_limit", package=package, max_pages=self._max_pages)

        return group_by_advisory(nodes)

    async def query_dependency(self, dep: Dependency) -> list[UnifiedAdvisory]:
        """Advisories whose vulnerable ranges include ``dep.version``."""
        advisories = await self.query_package(dep.ecosystem, dep.name)
        result: list[UnifiedAdvisory] = []
        for advisory in advisories:
            unified = ghsa_to_unified(advisory, dep.version)
            if unified is not None:
                result.append(unified)
        return result

    # ── internal ───────────────────────────────────────────────────────────

    async def _post(self, headers: dict[str, str], variables: dict[str, Any]) -> dict[str, Any]:
        resp = await request_with_retry(
            self._client,
            "POST",
            self._url,
            source=_SOURCE,
            policy=self._policy,
            headers=headers,
            json={"query": QUERY, "variables": variables},
        )
        try:
            data = resp.json()
        except ValueError as exc:
            raise AdvisorySourceError(_SOURCE, f"malformed response body: {exc}") from exc
        if not isinstance(data, dict):
            raise AdvisorySourceError(_SOURCE, "malformed response body")
        if data.get("errors"):
            raise AdvisorySourceError(_SOURCE, f"GraphQL errors: {data['errors']}")
        return data
