"""Registry lookups for package release activity (npm, PyPI)."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from depsentinel.engines.advisory.retry import RetryPolicy, request_with_retry
from depsentinel.engines.dependency_scanner.models import Dependency
from depsentinel.errors import AdvisorySourceError

log = structlog.get_logger("depsentinel.engine")

UNMAINTAINED_AFTER_DAYS = 365
DEFAULT_CONCURRENCY = 5

NPM_REGISTRY = "https://registry.npmjs.org"
NPM_DOWNLOADS = "https://api.npmjs.org/downloads/point/last-week"
PYPI_REGISTRY = "https://pypi.org/pypi"
PYPI_STATS = "https://pypistats.org/api/packages"

_REGISTRY_POLICY = RetryPolicy(attempts=3, min_delay=1.0, max_delay=10.0, timeout=10.0)
_STATS_POLICY = RetryPolicy(attempts=2, min_delay=1.0, max_delay=5.0, timeout=5.0)

_NPM_TIME_META = {"created", "modified"}


@dataclass
class MaintenanceInfo:
    package: str
    ecosystem: str
    last_release_date: str | None = None
    days_since_last_release: int | None = None
    is_unmaintained: bool = False
    weekly_downloads: int | None = None
    monthly_downloads: int | None = None
    error: str | None = None


def _parse_ts(value: str) -> datetime | None:
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def npm_release_dates(doc: dict[str, Any]) -> list[datetime]:
    dates = []
    for key, value in (doc.get("time") or {}).items():
        if key in _NPM_TIME_META or key.startswith("unpublished"):
            continue
        ts = _parse_ts(value) if isinstance(value, str) else None
        if ts is not None:
            dates.append(ts)
    return dates


def pypi_release_dates(doc: dict[str, Any]) -> list[datetime]:
    dates = []
    for files in (doc.get("releases") or {}).values():
        for f in files or []:
            ts = _parse_ts(f.get("upload_time_iso_8601") or "")
            if ts is not None:
                dates.append(ts)
    return dates


def _apply_release_dates(info: MaintenanceInfo, dates: list[datetime], now: datetime) -> None:
    if not dates:
        info.is_unmaintained = True
        info.error = "No release dates found"
        return
    last = max(dates)
    info.last_release_date = last.isoformat()
    info.days_since_last_release = (now - last).days
    info.is_unmaintained = info.days_since_last_release >= UNMAINTAINED_AFTER_DAYS


async def _get_json(client: httpx.AsyncClient, url: str, source: str, policy: RetryPolicy) -> Any:
    resp = await request_with_retry(client, "GET", url, source=source, policy=policy)
    return resp.json()


async def _npm_downloads(client: httpx.AsyncClient, name: str) -> tuple[int | None, int | None]:
    try:
        url = f"{NPM_DOWNLOADS}/{quote(name, safe='')}"
        data = await _get_json(client, url, "npm", _STATS_POLICY)
    except (AdvisorySourceError, ValueError) as exc:
        log.debug("maintenance.downloads_failed", package=name, error=str(exc))
        return None, None
    return int(data.get("downloads") or 0), None


async def _pypi_downloads(client: httpx.AsyncClient, name: str) -> tuple[int | None, int | None]:
    try:
        url = f"{PYPI_STATS}/{quote(name, safe='')}/recent"
        data = await _get_json(client, url, "pypi", _STATS_POLICY)
    except (AdvisorySourceError, ValueError) as exc:
        log.debug("maintenance.downloads_failed", package=name, error=str(exc))
        return None, None
    stats = data.get("data") or {}
    return int(stats.get("last_week") or 0), int(stats.get("last_month") or 0)


async def check_maintenance(
    client: httpx.AsyncClient,
    dep: Dependency,
    now: datetime | None = None,
) -> MaintenanceInfo:
    """Look up the last release of *dep*; failures land in ``info.error``."""
    now = now or datetime.now(timezone.utc)
    info = MaintenanceInfo(package=dep.name, ecosystem=dep.ecosystem)
    eco = dep.ecosystem.lower()

    if eco == "npm":
        url, source = f"{NPM_REGISTRY}/{quote(dep.name, safe='')}", "npm"
        extract, downloads = npm_release_dates, _npm_downloads
    elif eco in ("pypi", "python"):
        url, source = f"{PYPI_REGISTRY}/{quote(dep.name, safe='')}/json", "pypi"
        extract, downloads = pypi_release_dates, _pypi_downloads
    else:
        info.error = f"Maintenance checking not supported for ecosystem: {dep.ecosystem}"
        return info

    try:
        doc = await _get_json(client, url, source, _REGISTRY_POLICY)
    except AdvisorySourceError as exc:
        info.error = "Package not found" if exc.status == 404 else str(exc)
        log.debug("maintenance.lookup_failed", package=dep.name, error=info.error)
        return info
    except ValueError as exc:
        info.error = f"malformed registry response: {exc}"
        return info

    _apply_release_dates(info, extract(doc), now)
    if info.last_release_date is not None:
        info.weekly_downloads, info.monthly_downloads = await downloads(client, dep.name)
    return info


async def check_maintenance_batch(
    deps: Sequence[Dependency],
    concurrency: int = DEFAULT_CONCURRENCY,
    *,
    client: httpx.AsyncClient | None = None,
    now: datetime | None = None,
) -> dict[str, MaintenanceInfo]:
    """Check each distinct package name once; keyed by package name."""
    unique: dict[str, Dependency] = {}
    for dep in deps:
        unique.setdefault(dep.name, dep)

    owns_client = client is None
    http = client or httpx.AsyncClient()
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _one(dep: Dependency) -> MaintenanceInfo:
        async with sem:
            return await check_maintenance(http, dep, now)

    try:
        infos = await asyncio.gather(*(_one(d) for d in unique.values()))
    finally:
        if owns_client:
            await http.aclose()

    results = {info.package: info for info in infos}
    stale = sum(1 for info in infos if info.is_unmaintained)
    log.info("maintenance.checked", packages=len(results), unmaintained=stale)
    return results
