"""Scan orchestrator: one path in, one complete ScanResult out.

Pipeline: resolve input → select provider → ensure lockfile → gather
dependencies → query advisories → merge → apply ignore rules →
(optional) maintenance lookup.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from depsentinel.engines.advisory import (
    AdvisoryQueryEngine,
    CredentialCache,
    GHSAClient,
    OSVClient,
    UnifiedAdvisory,
)
from depsentinel.engines.dependency_scanner import (
    Dependency,
    DetectionResult,
    DirectoryInput,
    GatherInput,
    LockfileOptions,
    StandaloneInput,
    list_supported_manifest_filenames,
    select_provider,
)
from depsentinel.engines.dependency_scanner.registry import match_filename
from depsentinel.engines.ignore import filter_advisories, find_ignore_file, load_ignore_config
from depsentinel.engines.maintenance import MaintenanceInfo, check_maintenance_batch
from depsentinel.errors import DetectionFailure, ManifestMissing

log = structlog.get_logger("depsentinel.engine")

# Given as a file, these are scanned through their directory so the
# lockfile next to them is preferred.
MANIFEST_FILENAMES = frozenset({"package.json", "pyproject.toml", "requirements.txt", "go.mod"})


@dataclass
class ScanOptions:
    include_dev: bool = False
    validate_lock: bool = False
    refresh_lock: bool = False
    concurrency: int = 10
    ignore_file_path: str | None = None
    check_maintenance: bool = False
    use_ghsa: bool = True

    def lockfile_options(self) -> LockfileOptions:
        return LockfileOptions(
            force_refresh=self.refresh_lock,
            force_validate=self.validate_lock,
        )


@dataclass(frozen=True)
class ScanResult:
    detection: DetectionResult
    deps: list[Dependency]
    advisories_by_package: dict[str, list[UnifiedAdvisory]]
    scan_duration_ms: int
    ignored_count: int = 0
    maintenance: dict[str, MaintenanceInfo] | None = field(default=None)

    @property
    def vulnerable_count(self) -> int:
        return len(self.advisories_by_package)

    @property
    def advisory_count(self) -> int:
        return sum(len(v) for v in self.advisories_by_package.values())


def resolve_input(path: str | Path) -> tuple[Path, GatherInput]:
    """Split *path* into the project directory and the gather input.

    Raises :class:`ManifestMissing` for a missing path and
    :class:`DetectionFailure` for an unsupported file.
    """
    path = Path(path)
    if not path.exists():
        raise ManifestMissing(f"Path does not exist: {path}")
    if path.is_dir():
        return path, DirectoryInput(path)

    if match_filename(path.name) is None:
        supported = ", ".join(sorted(list_supported_manifest_filenames()))
        raise DetectionFailure(f"Unsupported file: {path.name}. Supported files: {supported}")

    directory = path.parent
    if path.name in MANIFEST_FILENAMES:
        return directory, DirectoryInput(directory)
    return directory, StandaloneInput(path)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def scan(
    path: str | Path,
    options: ScanOptions | None = None,
    *,
    osv_client: OSVClient | None = None,
    ghsa_client: GHSAClient | None = None,
    credentials: CredentialCache | None = None,
) -> ScanResult:
    """Scan a project directory or a single manifest/lockfile.

    Clients passed in are used as-is and left open; clients created here
    are closed before returning. Any failure surfaces as one
    :class:`~depsentinel.errors.DepSentinelError`.
    """
    opts = options or ScanOptions()
    start = time.monotonic()

    directory, source = resolve_input(path)
    standalone = source.path if isinstance(source, StandaloneInput) else None
    selection = select_provider(directory, standalone)
    log.info(
        "scan.detected",
        provider=selection.detection.provider_id,
        name=selection.detection.name,
        path=str(path),
    )

    # Standalone files are scanned exactly as supplied.
    if isinstance(source, DirectoryInput):
        await selection.provider.ensure_lockfile(directory, opts.lockfile_options())
    deps = await selection.provider.gather_dependencies(source, include_dev=opts.include_dev)
    log.info("scan.gathered", deps=len(deps))

    if not deps:
        return ScanResult(
            detection=selection.detection,
            deps=deps,
            advisories_by_package={},
            scan_duration_ms=_elapsed_ms(start),
        )

    osv = osv_client or OSVClient()
    ghsa: GHSAClient | None = None
    if opts.use_ghsa:
        ghsa = ghsa_client or GHSAClient(credentials=credentials)
    try:
        engine = AdvisoryQueryEngine(osv, ghsa, concurrency=opts.concurrency)
        advisories = await engine.scan(deps)
    finally:
        if osv_client is None:
            await osv.close()
        if ghsa is not None and ghsa_client is None:
            await ghsa.close()

    ignored_count = 0
    ignore_path = find_ignore_file(directory, opts.ignore_file_path)
    if ignore_path is not None:
        config = load_ignore_config(ignore_path)
        outcome = filter_advisories(advisories, deps, config)
        advisories, ignored_count = outcome.advisories, outcome.ignored_count

    maintenance: dict[str, MaintenanceInfo] | None = None
    if opts.check_maintenance:
        maintenance = await check_maintenance_batch(deps, concurrency=opts.concurrency)

    result = ScanResult(
        detection=selection.detection,
        deps=deps,
        advisories_by_package=advisories,
        scan_duration_ms=_elapsed_ms(start),
        ignored_count=ignored_count,
        maintenance=maintenance,
    )
    log.info(
        "scan.done",
        deps=len(deps),
        vulnerable=result.vulnerable_count,
        advisories=result.advisory_count,
        ignored=ignored_count,
        duration_ms=result.scan_duration_ms,
    )
    return result
