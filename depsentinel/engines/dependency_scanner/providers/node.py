"""Node.js provider — npm, pnpm and yarn (classic + berry)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DetectionResult,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.engines.dependency_scanner.parsers.npm_lock import parse_npm_lock
from depsentinel.engines.dependency_scanner.parsers.package_json import (
    parse_package_json,
    read_package_manager_field,
)
from depsentinel.engines.dependency_scanner.parsers.pnpm_lock import parse_pnpm_lock
from depsentinel.engines.dependency_scanner.parsers.yarn_lock import (
    parse_yarn_berry,
    parse_yarn_classic,
    parse_yarn_lock,
)
from depsentinel.engines.dependency_scanner.pm import run_package_manager
from depsentinel.engines.dependency_scanner.providers.base import EcosystemProvider, read_text
from depsentinel.errors import LockfileMissing, ManifestMissing

log = structlog.get_logger("depsentinel.engine")

_NPM_LOCKS = ("package-lock.json", "npm-shrinkwrap.json")


@dataclass(frozen=True)
class PackageManager:
    name: str  # npm | pnpm | yarn
    variant: str | None = None  # classic | berry (yarn only)


def _yarn_variant(directory: Path, package_manager_field: str | None = None) -> str:
    # yarn@4.1.0 -> berry, yarn@1.22.19 -> classic
    if package_manager_field and "@" in package_manager_field:
        major = package_manager_field.split("@", 1)[1].split(".", 1)[0]
        if major.isdigit() and int(major) >= 2:
            return "berry"
    lock = directory / "yarn.lock"
    if lock.is_file() and "__metadata:" in read_text(lock):
        return "berry"
    return "classic"


def detect_package_manager(directory: Path) -> PackageManager:
    """Lockfile first, then ``packageManager``, then workspace hint, default npm."""
    if (directory / "pnpm-lock.yaml").is_file():
        return PackageManager("pnpm")
    if (directory / "yarn.lock").is_file():
        pkg_path = directory / "package.json"
        field = read_package_manager_field(read_text(pkg_path)) if pkg_path.is_file() else None
        return PackageManager("yarn", _yarn_variant(directory, field))
    if any((directory / name).is_file() for name in _NPM_LOCKS):
        return PackageManager("npm")

    pkg_path = directory / "package.json"
    if pkg_path.is_file():
        field = read_package_manager_field(read_text(pkg_path))
        if field:
            if field.startswith("pnpm@"):
                return PackageManager("pnpm")
            if field.startswith("yarn@"):
                return PackageManager("yarn", _yarn_variant(directory, field))
            if field.startswith("npm@"):
                return PackageManager("npm")

    if (directory / "pnpm-workspace.yaml").is_file():
        return PackageManager("pnpm")
    return PackageManager("npm")


def _create_cmd(pm: PackageManager) -> list[str]:
    if pm.name == "pnpm":
        return ["pnpm", "install", "--lockfile-only"]
    if pm.name == "npm":
        return ["npm", "install", "--package-lock-only"]
    if pm.variant == "berry":
        return ["yarn", "install", "--mode=update-lockfile"]
    return ["yarn", "install"]


def _validate_cmd(pm: PackageManager) -> list[str]:
    if pm.name == "pnpm":
        return ["pnpm", "install", "--frozen-lockfile"]
    if pm.name == "npm":
        return ["npm", "ci", "--dry-run"]
    if pm.variant == "berry":
        return ["yarn", "install", "--immutable"]
    return ["yarn", "install", "--frozen-lockfile"]


class NodeProvider(EcosystemProvider):
    provider_id = "node"
    supported_manifests = (
        "package.json",
        "package-lock.json",
        "npm-shrinkwrap.json",
        "pnpm-lock.yaml",
        "pnpm-workspace.yaml",
        "yarn.lock",
    )

    def detect(self, directory: Path) -> DetectionResult | None:
        if not (directory / "package.json").is_file():
            return None
        pm = detect_package_manager(directory)
        return DetectionResult(
            provider_id=self.provider_id, name=pm.name, variant=pm.variant, confidence=1.0
        )

    async def ensure_lockfile(self, directory: Path, options: LockfileOptions) -> None:
        pm = detect_package_manager(directory)
        if pm.name == "pnpm":
            has_lock = (directory / "pnpm-lock.yaml").is_file()
        elif pm.name == "yarn":
            has_lock = (directory / "yarn.lock").is_file()
        else:
            has_lock = any((directory / name).is_file() for name in _NPM_LOCKS)

        if options.force_refresh:
            await run_package_manager(_create_cmd(pm), directory)
        elif options.force_validate:
            await run_package_manager(_validate_cmd(pm), directory)
        elif not has_lock and options.create_if_missing:
            await run_package_manager(_create_cmd(pm), directory)
        elif has_lock and options.validate_if_present:
            await run_package_manager(_validate_cmd(pm), directory)

    def _parse_standalone(self, source: StandaloneInput, include_dev: bool) -> list[Dependency]:
        filename = source.filename
        if filename.endswith("package.json"):
            raise LockfileMissing(
                "package.json requires a lockfile for accurate dependency resolution; "
                "supply package-lock.json, pnpm-lock.yaml or yarn.lock instead, "
                "or scan the directory containing both files"
            )
        if filename.endswith("pnpm-workspace.yaml"):
            raise LockfileMissing(
                "pnpm-workspace.yaml only defines workspace structure; "
                "supply pnpm-lock.yaml from the workspace root instead"
            )

        content = read_text(source.path)
        if filename.endswith("pnpm-lock.yaml"):
            return parse_pnpm_lock(content, include_dev)
        if filename.endswith(_NPM_LOCKS):
            return parse_npm_lock(content, include_dev)
        if filename.endswith("yarn.lock"):
            return parse_yarn_lock(content, include_dev)
        raise LockfileMissing(f"unsupported Node.js file: {filename}")

    def _parse_lockfile(self, directory: Path, include_dev: bool) -> list[Dependency] | None:
        pm = detect_package_manager(directory)
        if pm.name == "npm":
            for name in _NPM_LOCKS:
                lock = directory / name
                if lock.is_file():
                    return parse_npm_lock(read_text(lock), include_dev)
        elif pm.name == "pnpm":
            lock = directory / "pnpm-lock.yaml"
            if lock.is_file():
                return parse_pnpm_lock(read_text(lock), include_dev)
        elif pm.name == "yarn":
            lock = directory / "yarn.lock"
            if lock.is_file():
                content = read_text(lock)
                if pm.variant == "berry":
                    return parse_yarn_berry(content, include_dev)
                return parse_yarn_classic(content, include_dev)
        return None

    def _parse_manifest(self, directory: Path, include_dev: bool) -> list[Dependency]:
        manifest = directory / "package.json"
        if not manifest.is_file():
            raise ManifestMissing(f"package.json not found in {directory}")
        log.info("provider.manifest_only", provider=self.provider_id, dir=str(directory))
        return parse_package_json(read_text(manifest), include_dev)
