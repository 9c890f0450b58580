"""Ignore-file schema."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

log = structlog.get_logger("depsentinel.engine")


class IgnoreRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    package: str | None = None
    package_version: str | None = Field(default=None, alias="packageVersion")
    expires: datetime | None = None
    reason: str | None = None

    @field_validator("expires", mode="before")
    @classmethod
    def _parse_expires(cls, v: object) -> object:
        # "2025-12-31" expires at midnight UTC; naive timestamps are UTC.
        # An unreadable expiry leaves the rule without one.
        if v is None or isinstance(v, datetime):
            parsed = v
        elif isinstance(v, str) and v.strip():
            try:
                parsed = datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
            except ValueError:
                log.warning("ignore.bad_expiry", expires=v)
                return None
        elif isinstance(v, str):
            return None
        else:
            log.warning("ignore.bad_expiry", expires=repr(v))
            return None
        if isinstance(parsed, datetime) and parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


class IgnoreConfig(BaseModel):
    version: str | None = None
    ignores: list[IgnoreRule]
