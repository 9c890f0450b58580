"""Lockfile and manifest parsers: pure text -> list[Dependency] functions."""

from depsentinel.engines.dependency_scanner.parsers.go_mod import parse_go_mod, parse_go_sum
from depsentinel.engines.dependency_scanner.parsers.npm_lock import parse_npm_lock
from depsentinel.engines.dependency_scanner.parsers.package_json import parse_package_json
from depsentinel.engines.dependency_scanner.parsers.pip_requirements import parse_requirements
from depsentinel.engines.dependency_scanner.parsers.pnpm_lock import parse_pnpm_lock
from depsentinel.engines.dependency_scanner.parsers.poetry import (
    parse_poetry_lock,
    parse_poetry_pyproject,
)
from depsentinel.engines.dependency_scanner.parsers.yarn_lock import (
    parse_yarn_berry,
    parse_yarn_classic,
    parse_yarn_lock,
)

__all__ = [
    "parse_go_mod",
    "parse_go_sum",
    "parse_npm_lock",
    "parse_package_json",
    "parse_pnpm_lock",
    "parse_poetry_lock",
    "parse_poetry_pyproject",
    "parse_requirements",
    "parse_yarn_berry",
    "parse_yarn_classic",
    "parse_yarn_lock",
]
