"""Ecosystem provider contract shared by every supported ecosystem."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DetectionResult,
    DirectoryInput,
    GatherInput,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.errors import LockfileParseError

log = structlog.get_logger("depsentinel.engine")


def read_text(path: Path) -> str:
    """Read a manifest or lockfile; I/O failures become LockfileParseError."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise LockfileParseError(path.name, f"cannot read file: {exc}") from exc


class EcosystemProvider(ABC):
    """One package-manager universe (npm, Go modules, Poetry, pip).

    Subclasses implement lockfile parsing for both input modes and the
    manifest fallback. :meth:`gather_dependencies` owns the failure policy:
    a directory scan falls back to the manifest when the lockfile cannot be
    parsed, a standalone file never does.
    """

    provider_id: str
    supported_manifests: tuple[str, ...] = ()

    @abstractmethod
    def detect(self, directory: Path) -> DetectionResult | None: ...

    @abstractmethod
    async def ensure_lockfile(self, directory: Path, options: LockfileOptions) -> None: ...

    @abstractmethod
    def _parse_standalone(self, source: StandaloneInput, include_dev: bool) -> list[Dependency]:
        """Parse one explicitly chosen file, inferring the parser from its name."""

    @abstractmethod
    def _parse_lockfile(self, directory: Path, include_dev: bool) -> list[Dependency] | None:
        """Parse the directory's lockfile, or return None when there is none."""

    @abstractmethod
    def _parse_manifest(self, directory: Path, include_dev: bool) -> list[Dependency]:
        """Declared dependencies from the directory's manifest."""

    async def gather_dependencies(
        self, source: GatherInput, *, include_dev: bool = False
    ) -> list[Dependency]:
        if isinstance(source, StandaloneInput):
            return self._parse_standalone(source, include_dev)

        assert isinstance(source, DirectoryInput)
        try:
            deps = self._parse_lockfile(source.dir, include_dev)
        except (LockfileParseError, OSError) as exc:
            log.warning(
                "provider.lockfile_fallback",
                provider=self.provider_id,
                dir=str(source.dir),
                error=str(exc),
            )
            deps = None
        if deps is not None:
            return deps
        return self._parse_manifest(source.dir, include_dev)
