"""Parser for pnpm-lock.yaml (lockfile v6 through v10).

Package keys:
  v6:   ``/lodash@4.17.21``, ``/@scope/pkg@1.0.0``
  v9+:  ``lodash@4.17.21``, ``@scope/pkg@1.0.0``
Either form may carry a peer suffix (``react-dom@18.2.0(react@18.2.0)``)
or a catalog reference (``pkg@catalog:default``).
"""

from __future__ import annotations

import yaml

from depsentinel.engines.dependency_scanner.models import Dependency, DependencyCollector
from depsentinel.errors import LockfileParseError

_CATALOG_MARKER = "@catalog:"


def _split_spec(spec: str, record_version: str | None) -> tuple[str, str] | None:
    spec = spec[1:] if spec.startswith("/") else spec
    spec = spec.split("(", 1)[0]

    if _CATALOG_MARKER in spec:
        name = spec.split(_CATALOG_MARKER, 1)[0]
        # Record version wins; otherwise the token after the first "@".
        parts = spec.split("@")
        fallback = parts[1] if len(parts) > 1 else ""
        return name, record_version or fallback or "*"

    at = spec.rfind("@")
    if at == -1:
        return None
    return spec[:at], record_version or spec[at + 1 :]


def parse_pnpm_lock(content: str, include_dev: bool = False) -> list[Dependency]:
    try:
        lock = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise LockfileParseError("pnpm-lock.yaml", str(exc)) from exc

    out = DependencyCollector("npm")
    if not isinstance(lock, dict):
        return out.result()
    packages = lock.get("packages")
    if not isinstance(packages, dict):
        return out.result()

    for spec, record in packages.items():
        record = record if isinstance(record, dict) else {}
        if record.get("dev") and not include_dev:
            continue
        spec = str(spec)
        if "workspace:" in spec:
            continue

        record_version = record.get("version")
        parsed = _split_spec(spec, str(record_version) if record_version else None)
        if parsed is None:
            continue
        name, version = parsed
        if not version or version == "*":
            continue
        out.add(name, version)

    return out.result()
