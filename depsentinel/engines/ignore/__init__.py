"""Ignore engine — rule-based advisory suppression."""

from depsentinel.engines.ignore.models import IgnoreConfig, IgnoreRule
from depsentinel.engines.ignore.rules import (
    DEFAULT_IGNORE_FILENAME,
    FilterOutcome,
    filter_advisories,
    find_ignore_file,
    is_rule_active,
    load_ignore_config,
    should_ignore,
)

__all__ = [
    "DEFAULT_IGNORE_FILENAME",
    "FilterOutcome",
    "IgnoreConfig",
    "IgnoreRule",
    "filter_advisories",
    "find_ignore_file",
    "is_rule_active",
    "load_ignore_config",
    "should_ignore",
]
