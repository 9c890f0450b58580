"""CLI entry point: depsentinel.

Subcommands:
    depsentinel scan [PATH]       # Scan a project directory or lockfile, print JSON
    depsentinel supported         # List accepted manifest and lockfile names
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import sys
from typing import Any

import click

from depsentinel.core.logging import setup_logging
from depsentinel.errors import DepSentinelError
from depsentinel.scanner import ScanOptions, ScanResult, list_supported_manifest_filenames, scan


def result_to_dict(result: ScanResult) -> dict[str, Any]:
    data = dataclasses.asdict(result)
    data["summary"] = {
        "dependencies": len(result.deps),
        "vulnerable_packages": result.vulnerable_count,
        "advisories": result.advisory_count,
        "ignored": result.ignored_count,
    }
    return data


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """depsentinel: dependency vulnerability scanner (OSV + GitHub advisories)."""
    setup_logging("DEBUG" if verbose else None)


@main.command("scan")
@click.argument("path", type=click.Path(), default=".")
@click.option("--dev", "include_dev", is_flag=True, help="Include dev/indirect dependencies")
@click.option("--validate-lock", is_flag=True, help="Validate the lockfile with the package manager")
@click.option("--refresh-lock", is_flag=True, help="Regenerate the lockfile before scanning")
@click.option("--concurrency", default=10, show_default=True, type=click.IntRange(min=1))
@click.option("--ignore-file", default=None, help="Ignore rules file (default: .vuln-ignore.json)")
@click.option("--check-maintenance", is_flag=True, help="Report packages without recent releases")
@click.option("--no-ghsa", is_flag=True, help="Skip GitHub advisories (no token needed)")
def scan_cmd(
    path: str,
    include_dev: bool,
    validate_lock: bool,
    refresh_lock: bool,
    concurrency: int,
    ignore_file: str | None,
    check_maintenance: bool,
    no_ghsa: bool,
) -> None:
    """Scan PATH and print the result as JSON."""
    options = ScanOptions(
        include_dev=include_dev,
        validate_lock=validate_lock,
        refresh_lock=refresh_lock,
        concurrency=concurrency,
        ignore_file_path=ignore_file,
        check_maintenance=check_maintenance,
        use_ghsa=not no_ghsa,
    )
    try:
        result = asyncio.run(scan(path, options))
    except DepSentinelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result_to_dict(result), indent=2, default=str))


@main.command("supported")
def supported() -> None:
    """List every manifest and lockfile name depsentinel accepts."""
    for name in sorted(list_supported_manifest_filenames()):
        click.echo(name)
