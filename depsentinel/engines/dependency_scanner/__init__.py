"""Dependency scanner engine — detect ecosystems and gather dependencies."""

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DetectionResult,
    DirectoryInput,
    GatherInput,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.engines.dependency_scanner.registry import (
    ProviderSelection,
    list_supported_manifest_filenames,
    select_provider,
)

__all__ = [
    "Dependency",
    "DetectionResult",
    "DirectoryInput",
    "GatherInput",
    "LockfileOptions",
    "ProviderSelection",
    "StandaloneInput",
    "list_supported_manifest_filenames",
    "select_provider",
]
