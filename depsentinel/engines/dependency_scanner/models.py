"""Data models for the dependency scanner engine."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

Ecosystem = Literal["npm", "Go", "PyPI"]


@dataclass(frozen=True)
class Dependency:
    """A single package reference taken from a lockfile or manifest."""

    name: str
    version: str
    ecosystem: str

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of ecosystem detection.

    ``confidence`` is only a positive signal; the registry never ranks
    providers by it.
    """

    provider_id: str
    name: str
    variant: str | None = None
    confidence: float = 1.0


@dataclass(frozen=True)
class LockfileOptions:
    force_refresh: bool = False
    force_validate: bool = False
    create_if_missing: bool = False
    validate_if_present: bool = False


@dataclass(frozen=True)
class DirectoryInput:
    """Gather from a project directory; lockfile errors fall back to the manifest."""

    dir: Path


@dataclass(frozen=True)
class StandaloneInput:
    """Gather from one explicitly chosen file; errors always propagate."""

    path: Path

    @property
    def filename(self) -> str:
        return self.path.name


GatherInput = Union[DirectoryInput, StandaloneInput]


class DependencyCollector:
    """Ordered accumulator that drops repeated (name, version) pairs."""

    def __init__(self, ecosystem: str) -> None:
        self._ecosystem = ecosystem
        self._seen: set[tuple[str, str]] = set()
        self._deps: list[Dependency] = []

    def add(self, name: str, version: str) -> None:
        key = (name, version)
        if key in self._seen:
            return
        self._seen.add(key)
        self._deps.append(Dependency(name=name, version=version, ecosystem=self._ecosystem))

    def result(self) -> list[Dependency]:
        return list(self._deps)
