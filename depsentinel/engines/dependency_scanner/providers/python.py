"""Python providers — Poetry (poetry.lock / pyproject.toml) and pip (requirements.txt)."""

from __future__ import annotations

from pathlib import Path

import structlog

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DetectionResult,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.engines.dependency_scanner.parsers.pip_requirements import parse_requirements
from depsentinel.engines.dependency_scanner.parsers.poetry import (
    parse_poetry_lock,
    parse_poetry_pyproject,
)
from depsentinel.engines.dependency_scanner.pm import run_package_manager
from depsentinel.engines.dependency_scanner.providers.base import EcosystemProvider, read_text
from depsentinel.errors import LockfileMissing, ManifestMissing

log = structlog.get_logger("depsentinel.engine")

_POETRY_MARKERS = ("[tool.poetry]", "[tool.poetry.dependencies]")


class PoetryProvider(EcosystemProvider):
    provider_id = "python-poetry"
    supported_manifests = ("pyproject.toml", "poetry.lock")

    def detect(self, directory: Path) -> DetectionResult | None:
        pyproject = directory / "pyproject.toml"
        if not pyproject.is_file():
            return None
        try:
            content = read_text(pyproject)
        except OSError:
            return None
        if not any(marker in content for marker in _POETRY_MARKERS):
            return None
        return DetectionResult(provider_id=self.provider_id, name="Poetry", confidence=1.0)

    async def ensure_lockfile(self, directory: Path, options: LockfileOptions) -> None:
        has_lock = (directory / "poetry.lock").is_file()
        lock_cmd = ["poetry", "lock", "--no-update"]
        check_cmd = ["poetry", "check", "--lock"]

        if options.force_refresh:
            await run_package_manager(lock_cmd, directory)
        elif options.force_validate:
            await run_package_manager(check_cmd, directory)
        elif not has_lock and options.create_if_missing:
            await run_package_manager(lock_cmd, directory)
        elif has_lock and options.validate_if_present:
            await run_package_manager(check_cmd, directory)

    def _parse_standalone(self, source: StandaloneInput, include_dev: bool) -> list[Dependency]:
        content = read_text(source.path)
        if source.filename.endswith("poetry.lock"):
            return parse_poetry_lock(content, include_dev)
        if source.filename.endswith("pyproject.toml"):
            return parse_poetry_pyproject(content, include_dev)
        raise LockfileMissing(f"unsupported Poetry file: {source.filename}")

    def _parse_lockfile(self, directory: Path, include_dev: bool) -> list[Dependency] | None:
        lock = directory / "poetry.lock"
        if lock.is_file():
            return parse_poetry_lock(read_text(lock), include_dev)
        return None

    def _parse_manifest(self, directory: Path, include_dev: bool) -> list[Dependency]:
        pyproject = directory / "pyproject.toml"
        if not pyproject.is_file():
            raise ManifestMissing(f"pyproject.toml not found in {directory}")
        log.info("provider.manifest_only", provider=self.provider_id, dir=str(directory))
        return parse_poetry_pyproject(read_text(pyproject), include_dev)


class PipProvider(EcosystemProvider):
    """requirements.txt has no lockfile; the manifest is parsed directly."""

    provider_id = "python-pip"
    supported_manifests = ("requirements.txt",)

    def detect(self, directory: Path) -> DetectionResult | None:
        # pyproject.toml projects belong to Poetry (or are not scanned)
        if not (directory / "requirements.txt").is_file():
            return None
        if (directory / "pyproject.toml").is_file():
            return None
        return DetectionResult(provider_id=self.provider_id, name="pip", confidence=0.9)

    async def ensure_lockfile(self, directory: Path, options: LockfileOptions) -> None:
        if not (directory / "requirements.txt").is_file():
            raise ManifestMissing(f"requirements.txt not found in {directory}")
        if options.force_validate or options.force_refresh:
            log.warning("pip.lockfile_unsupported", dir=str(directory))

    def _parse_standalone(self, source: StandaloneInput, include_dev: bool) -> list[Dependency]:
        return parse_requirements(read_text(source.path), include_dev)

    def _parse_lockfile(self, directory: Path, include_dev: bool) -> list[Dependency] | None:
        return None

    def _parse_manifest(self, directory: Path, include_dev: bool) -> list[Dependency]:
        requirements = directory / "requirements.txt"
        if not requirements.is_file():
            raise ManifestMissing(f"requirements.txt not found in {directory}")
        return parse_requirements(read_text(requirements), include_dev)
