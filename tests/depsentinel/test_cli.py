"""Tests for the click command-line interface."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from depsentinel.cli import main
from depsentinel.engines.advisory.models import UnifiedAdvisory
from depsentinel.engines.dependency_scanner.models import Dependency, DetectionResult
from depsentinel.errors import CredentialMissing
from depsentinel.scanner import ScanOptions, ScanResult

RESULT = ScanResult(
    detection=DetectionResult("node", "npm"),
    deps=[Dependency("lodash", "4.17.20", "npm"), Dependency("ms", "2.1.3", "npm")],
    advisories_by_package={
        "lodash@4.17.20": [
            UnifiedAdvisory(id="GHSA-35jh-r3h4-6jhm", source="osv", severity="HIGH")
        ]
    },
    scan_duration_ms=42,
    ignored_count=1,
)


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("depsentinel.cli.setup_logging") as mock_setup:
        yield mock_setup


class TestSupported:
    def test_lists_sorted_names(self):
        result = CliRunner().invoke(main, ["supported"])
        assert result.exit_code == 0
        names = result.output.split()
        assert names == sorted(names)
        assert {"go.sum", "poetry.lock", "yarn.lock"} <= set(names)


class TestScanCommand:
    def test_prints_json(self):
        with patch("depsentinel.cli.scan", AsyncMock(return_value=RESULT)):
            result = CliRunner().invoke(main, ["scan", "some/project"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"] == {
            "dependencies": 2,
            "vulnerable_packages": 1,
            "advisories": 1,
            "ignored": 1,
        }
        assert data["detection"]["provider_id"] == "node"
        assert data["advisories_by_package"]["lodash@4.17.20"][0]["id"] == "GHSA-35jh-r3h4-6jhm"

    def test_options_forwarded(self):
        mock_scan = AsyncMock(return_value=RESULT)
        with patch("depsentinel.cli.scan", mock_scan):
            result = CliRunner().invoke(
                main,
                [
                    "scan",
                    "proj",
                    "--dev",
                    "--validate-lock",
                    "--concurrency",
                    "4",
                    "--ignore-file",
                    "rules.json",
                    "--no-ghsa",
                ],
            )
        assert result.exit_code == 0
        path, options = mock_scan.call_args[0]
        assert path == "proj"
        assert options == ScanOptions(
            include_dev=True,
            validate_lock=True,
            concurrency=4,
            ignore_file_path="rules.json",
            use_ghsa=False,
        )

    def test_default_path(self):
        mock_scan = AsyncMock(return_value=RESULT)
        with patch("depsentinel.cli.scan", mock_scan):
            CliRunner().invoke(main, ["scan"])
        assert mock_scan.call_args[0][0] == "."

    def test_scan_error_exits_1(self):
        err = CredentialMissing("GitHub token required for advisory queries")
        with patch("depsentinel.cli.scan", AsyncMock(side_effect=err)):
            result = CliRunner().invoke(main, ["scan", "proj"])
        assert result.exit_code == 1
        assert "Error: GitHub token required" in result.output

    def test_rejects_zero_concurrency(self):
        result = CliRunner().invoke(main, ["scan", "--concurrency", "0"])
        assert result.exit_code == 2

    def test_verbose_enables_debug(self, _no_logging_setup):
        with patch("depsentinel.cli.scan", AsyncMock(return_value=RESULT)):
            CliRunner().invoke(main, ["-v", "scan", "proj"])
        _no_logging_setup.assert_called_once_with("DEBUG")
