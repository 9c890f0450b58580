"""Suppress advisories with user-authored ignore rules.

Rules live in a JSON file (``.vuln-ignore.json`` by default)::

    {"version": "1", "ignores": [
        {"id": "CVE-2024-1234", "expires": "2026-12-31", "reason": "..."},
        {"package": "lodash", "packageVersion": "4.17.20"},
        {"id": "@scope/pkg@1.0.0"}
    ]}

A rule whose ``expires`` is in the past is inert. Loading never aborts a
scan: a missing or invalid file just means no rules.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError

from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.dependency_scanner.models import Dependency
from depsentinel.engines.ignore.models import IgnoreConfig, IgnoreRule

log = structlog.get_logger("depsentinel.engine")

DEFAULT_IGNORE_FILENAME = ".vuln-ignore.json"


@dataclass
class FilterOutcome:
    advisories: dict[str, list[UnifiedAdvisory]]
    ignored_count: int


def find_ignore_file(project_dir: str | Path, custom_path: str | Path | None = None) -> Path | None:
    if custom_path:
        return Path(custom_path)
    default = Path(project_dir) / DEFAULT_IGNORE_FILENAME
    return default if default.is_file() else None


def load_ignore_config(path: str | Path) -> IgnoreConfig | None:
    path = Path(path)
    if not path.is_file():
        log.warning("ignore.file_missing", path=str(path))
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        config = IgnoreConfig.model_validate(raw)
    except (OSError, ValueError, ValidationError) as exc:
        log.warning("ignore.load_failed", path=str(path), error=str(exc))
        return None
    log.info("ignore.loaded", path=str(path), rules=len(config.ignores))
    return config


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_rule_active(rule: IgnoreRule, now: datetime | None = None) -> bool:
    if rule.expires is None:
        return True
    now = now or _now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now <= rule.expires


def _split_package_id(rule_id: str) -> tuple[str, str] | None:
    # Last "@" so "@scope/pkg@1.0.0" splits into ("@scope/pkg", "1.0.0").
    idx = rule_id.rfind("@")
    if idx <= 0:
        return None
    return rule_id[:idx], rule_id[idx + 1 :]


def _rule_matches(rule: IgnoreRule, advisory: UnifiedAdvisory, name: str, version: str) -> bool:
    if rule.id:
        if rule.id == advisory.id or rule.id in advisory.cve_ids:
            return True
        pkg = _split_package_id(rule.id)
        if pkg is not None and pkg == (name, version):
            return True
    if rule.package and rule.package == name:
        if rule.package_version is None or rule.package_version == version:
            return True
    return False


def should_ignore(
    advisory: UnifiedAdvisory,
    name: str,
    version: str,
    config: IgnoreConfig | None,
    now: datetime | None = None,
) -> bool:
    if config is None:
        return False
    now = now or _now()
    return any(
        is_rule_active(rule, now) and _rule_matches(rule, advisory, name, version)
        for rule in config.ignores
    )


def filter_advisories(
    advisories_by_package: Mapping[str, Sequence[UnifiedAdvisory]],
    deps: Sequence[Dependency],
    config: IgnoreConfig | None,
    now: datetime | None = None,
) -> FilterOutcome:
    """Return a new package map with suppressed advisories removed.

    Packages left with no advisories are dropped. The input mapping is not
    modified.
    """
    if config is None:
        return FilterOutcome({k: list(v) for k, v in advisories_by_package.items()}, 0)

    now = now or _now()
    by_key = {dep.key: dep for dep in deps}
    filtered: dict[str, list[UnifiedAdvisory]] = {}
    ignored = 0

    for key, advisories in advisories_by_package.items():
        dep = by_key.get(key)
        if dep is not None:
            name, version = dep.name, dep.version
        else:
            name, _, version = key.rpartition("@")
        kept = []
        for advisory in advisories:
            if should_ignore(advisory, name, version, config, now):
                ignored += 1
            else:
                kept.append(advisory)
        if kept:
            filtered[key] = kept

    if ignored:
        log.info("ignore.applied", ignored=ignored)
    return FilterOutcome(filtered, ignored)
