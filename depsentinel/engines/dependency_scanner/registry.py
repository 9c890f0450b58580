"""Provider registry — match a directory or a single file to its ecosystem."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from depsentinel.engines.dependency_scanner.models import DetectionResult
from depsentinel.engines.dependency_scanner.providers import (
    EcosystemProvider,
    GoProvider,
    NodeProvider,
    PipProvider,
    PoetryProvider,
)
from depsentinel.errors import DetectionFailure

_NODE = NodeProvider()
_GO = GoProvider()
_POETRY = PoetryProvider()
_PIP = PipProvider()

# Detection order. Poetry precedes pip because pyproject.toml is more specific.
PROVIDERS: tuple[EcosystemProvider, ...] = (_NODE, _GO, _POETRY, _PIP)

# Filename suffix -> (provider, detection) for standalone files.
_STANDALONE_TABLE: tuple[tuple[str, EcosystemProvider, DetectionResult], ...] = (
    ("pnpm-lock.yaml", _NODE, DetectionResult("node", "pnpm")),
    ("pnpm-workspace.yaml", _NODE, DetectionResult("node", "pnpm")),
    ("package-lock.json", _NODE, DetectionResult("node", "npm")),
    ("npm-shrinkwrap.json", _NODE, DetectionResult("node", "npm")),
    ("package.json", _NODE, DetectionResult("node", "npm")),
    ("yarn.lock", _NODE, DetectionResult("node", "yarn")),
    ("poetry.lock", _POETRY, DetectionResult("python-poetry", "poetry")),
    ("pyproject.toml", _POETRY, DetectionResult("python-poetry", "poetry")),
    ("requirements.txt", _PIP, DetectionResult("python-pip", "pip")),
    ("go.mod", _GO, DetectionResult("go", "Go modules")),
    ("go.sum", _GO, DetectionResult("go", "Go modules")),
)

_SUPPORTED_ECOSYSTEMS = "Node.js (npm/pnpm/yarn), Go (modules), Python (Poetry, pip)"


@dataclass(frozen=True)
class ProviderSelection:
    provider: EcosystemProvider
    detection: DetectionResult


def match_filename(filename: str) -> ProviderSelection | None:
    """Map a filename to its provider without touching the filesystem.

    Suffix matching also accepts prefixed upload names such as
    ``8a161a-pnpm-lock.yaml``.
    """
    for suffix, provider, detection in _STANDALONE_TABLE:
        if filename.endswith(suffix):
            return ProviderSelection(provider, detection)
    return None


def select_provider(
    directory: Path, standalone_lockfile: Path | None = None
) -> ProviderSelection:
    """Pick the provider for a standalone file or the first one detecting *directory*.

    Raises :class:`DetectionFailure` when nothing matches.
    """
    if standalone_lockfile is not None:
        selection = match_filename(standalone_lockfile.name)
        if selection is not None:
            return selection

    for provider in PROVIDERS:
        detection = provider.detect(directory)
        if detection is not None:
            return ProviderSelection(provider, detection)

    raise DetectionFailure(
        f"No supported ecosystem detected in {directory}. Supported: {_SUPPORTED_ECOSYSTEMS}"
    )


def list_supported_manifest_filenames() -> frozenset[str]:
    """Every manifest and lockfile name any provider accepts."""
    names: set[str] = set()
    for provider in PROVIDERS:
        names.update(provider.supported_manifests)
    return frozenset(names)
