"""Go modules provider — go.sum (resolved) with go.mod fallback."""

from __future__ import annotations

from pathlib import Path

import structlog

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DetectionResult,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.engines.dependency_scanner.parsers.go_mod import parse_go_mod, parse_go_sum
from depsentinel.engines.dependency_scanner.pm import run_package_manager
from depsentinel.engines.dependency_scanner.providers.base import EcosystemProvider, read_text
from depsentinel.errors import LockfileMissing, ManifestMissing

log = structlog.get_logger("depsentinel.engine")


class GoProvider(EcosystemProvider):
    provider_id = "go"
    supported_manifests = ("go.mod", "go.sum")

    def detect(self, directory: Path) -> DetectionResult | None:
        if not (directory / "go.mod").is_file():
            return None
        return DetectionResult(provider_id=self.provider_id, name="Go modules", confidence=1.0)

    async def ensure_lockfile(self, directory: Path, options: LockfileOptions) -> None:
        if not (directory / "go.mod").is_file():
            raise ManifestMissing(f"go.mod not found in {directory}")
        has_sum = (directory / "go.sum").is_file()

        # go.sum is maintained by the go tool itself
        if options.force_refresh or (not has_sum and options.create_if_missing):
            await run_package_manager(["go", "mod", "tidy"], directory)
        elif options.force_validate or (has_sum and options.validate_if_present):
            if not has_sum:
                log.warning("go.sum_missing", dir=str(directory), hint="run 'go mod download'")
            await run_package_manager(["go", "mod", "verify"], directory)

    def _parse_standalone(self, source: StandaloneInput, include_dev: bool) -> list[Dependency]:
        content = read_text(source.path)
        if source.filename.endswith("go.sum"):
            return parse_go_sum(content, include_dev)
        if source.filename.endswith("go.mod"):
            return parse_go_mod(content, include_dev)
        raise LockfileMissing(f"unsupported Go file: {source.filename}")

    def _parse_lockfile(self, directory: Path, include_dev: bool) -> list[Dependency] | None:
        go_sum = directory / "go.sum"
        if go_sum.is_file():
            return parse_go_sum(read_text(go_sum), include_dev)
        return None

    def _parse_manifest(self, directory: Path, include_dev: bool) -> list[Dependency]:
        go_mod = directory / "go.mod"
        if not go_mod.is_file():
            raise ManifestMissing(f"neither go.sum nor go.mod found in {directory}")
        return parse_go_mod(read_text(go_mod), include_dev)
