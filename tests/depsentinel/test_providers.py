"""Tests for ecosystem providers and the package-manager runner."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from depsentinel.engines.dependency_scanner.models import (
    Dependency,
    DirectoryInput,
    LockfileOptions,
    StandaloneInput,
)
from depsentinel.engines.dependency_scanner.pm import run_package_manager
from depsentinel.engines.dependency_scanner.providers import (
    GoProvider,
    NodeProvider,
    PipProvider,
    PoetryProvider,
)
from depsentinel.engines.dependency_scanner.providers.node import (
    PackageManager,
    detect_package_manager,
)
from depsentinel.errors import (
    LockfileMissing,
    LockfileParseError,
    ManifestMissing,
    PackageManagerInvocationError,
)

_NODE_PM = "depsentinel.engines.dependency_scanner.providers.node.run_package_manager"
_GO_PM = "depsentinel.engines.dependency_scanner.providers.go.run_package_manager"
_PY_PM = "depsentinel.engines.dependency_scanner.providers.python.run_package_manager"


# ── helpers ──────────────────────────────────────────────────────────────


def _package_json(tmp_path: Path, **fields) -> None:
    data = {"name": "app", "dependencies": {"express": "^4.18.0"}, **fields}
    (tmp_path / "package.json").write_text(json.dumps(data))


def _npm_lock(tmp_path: Path) -> None:
    lock = {
        "lockfileVersion": 3,
        "packages": {"": {}, "node_modules/express": {"version": "4.18.2"}},
    }
    (tmp_path / "package-lock.json").write_text(json.dumps(lock))


# ── package-manager detection ────────────────────────────────────────────


class TestDetectPackageManager:
    def test_default_npm(self, tmp_path):
        _package_json(tmp_path)
        assert detect_package_manager(tmp_path) == PackageManager("npm")

    def test_pnpm_lockfile(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n")
        assert detect_package_manager(tmp_path) == PackageManager("pnpm")

    def test_yarn_classic_lockfile(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "yarn.lock").write_text("# yarn lockfile v1\n")
        assert detect_package_manager(tmp_path) == PackageManager("yarn", "classic")

    def test_yarn_berry_by_metadata(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "yarn.lock").write_text("__metadata:\n  version: 6\n")
        assert detect_package_manager(tmp_path) == PackageManager("yarn", "berry")

    def test_package_manager_field_yarn_berry(self, tmp_path):
        _package_json(tmp_path, packageManager="yarn@4.1.0")
        assert detect_package_manager(tmp_path) == PackageManager("yarn", "berry")

    def test_package_manager_field_pnpm(self, tmp_path):
        _package_json(tmp_path, packageManager="pnpm@9.1.0")
        assert detect_package_manager(tmp_path).name == "pnpm"

    def test_workspace_hint(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "pnpm-workspace.yaml").write_text("packages:\n  - 'packages/*'\n")
        assert detect_package_manager(tmp_path).name == "pnpm"

    def test_lockfile_beats_package_manager_field(self, tmp_path):
        _package_json(tmp_path, packageManager="pnpm@9.1.0")
        _npm_lock(tmp_path)
        assert detect_package_manager(tmp_path).name == "npm"


# ── NodeProvider ─────────────────────────────────────────────────────────


class TestNodeProvider:
    def test_detect_requires_package_json(self, tmp_path):
        assert NodeProvider().detect(tmp_path) is None
        _package_json(tmp_path)
        result = NodeProvider().detect(tmp_path)
        assert result.provider_id == "node"
        assert result.name == "npm"

    @pytest.mark.anyio
    async def test_gather_prefers_lockfile(self, tmp_path):
        _package_json(tmp_path)
        _npm_lock(tmp_path)
        deps = await NodeProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("express", "4.18.2", "npm")]

    @pytest.mark.anyio
    async def test_directory_falls_back_to_manifest_on_bad_lockfile(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "package-lock.json").write_text("{broken")
        deps = await NodeProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("express", "^4.18.0", "npm")]

    @pytest.mark.anyio
    async def test_directory_manifest_only(self, tmp_path):
        _package_json(tmp_path)
        deps = await NodeProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("express", "^4.18.0", "npm")]

    @pytest.mark.anyio
    async def test_directory_without_manifest(self, tmp_path):
        with pytest.raises(ManifestMissing):
            await NodeProvider().gather_dependencies(DirectoryInput(tmp_path))

    @pytest.mark.anyio
    async def test_standalone_parse_error_propagates(self, tmp_path):
        lock = tmp_path / "package-lock.json"
        lock.write_text("{broken")
        _package_json(tmp_path)
        with pytest.raises(LockfileParseError):
            await NodeProvider().gather_dependencies(StandaloneInput(lock))

    @pytest.mark.anyio
    async def test_standalone_unreadable_file_is_typed(self, tmp_path):
        lock = tmp_path / "package-lock.json"
        lock.mkdir()
        with pytest.raises(LockfileParseError, match="cannot read file"):
            await NodeProvider().gather_dependencies(StandaloneInput(lock))

    @pytest.mark.anyio
    async def test_directory_unreadable_lockfile_falls_back(self, tmp_path):
        _package_json(tmp_path)
        lock = tmp_path / "package-lock.json"
        lock.write_text("{}")
        real_read = Path.read_text

        def _read(self, *args, **kwargs):
            if self.name == "package-lock.json":
                raise PermissionError(13, "Permission denied", str(self))
            return real_read(self, *args, **kwargs)

        with patch.object(Path, "read_text", _read):
            deps = await NodeProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("express", "^4.18.0", "npm")]

    @pytest.mark.anyio
    async def test_standalone_package_json_needs_lockfile(self, tmp_path):
        _package_json(tmp_path)
        with pytest.raises(LockfileMissing, match="lockfile"):
            await NodeProvider().gather_dependencies(StandaloneInput(tmp_path / "package.json"))

    @pytest.mark.anyio
    async def test_standalone_workspace_file_needs_lockfile(self, tmp_path):
        ws = tmp_path / "pnpm-workspace.yaml"
        ws.write_text("packages: []\n")
        with pytest.raises(LockfileMissing, match="pnpm-lock.yaml"):
            await NodeProvider().gather_dependencies(StandaloneInput(ws))

    @pytest.mark.anyio
    async def test_standalone_prefixed_upload_name(self, tmp_path):
        lock = tmp_path / "8a161a-pnpm-lock.yaml"
        lock.write_text("packages:\n  'lodash@4.17.21': {}\n")
        deps = await NodeProvider().gather_dependencies(StandaloneInput(lock))
        assert deps == [Dependency("lodash", "4.17.21", "npm")]

    @pytest.mark.anyio
    async def test_ensure_lockfile_noop_by_default(self, tmp_path):
        _package_json(tmp_path)
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, LockfileOptions())
            mock_pm.assert_not_called()

    @pytest.mark.anyio
    async def test_ensure_lockfile_force_refresh_pnpm(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n")
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, LockfileOptions(force_refresh=True))
            mock_pm.assert_awaited_once_with(["pnpm", "install", "--lockfile-only"], tmp_path)

    @pytest.mark.anyio
    async def test_ensure_lockfile_force_validate_npm(self, tmp_path):
        _package_json(tmp_path)
        _npm_lock(tmp_path)
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, LockfileOptions(force_validate=True))
            mock_pm.assert_awaited_once_with(["npm", "ci", "--dry-run"], tmp_path)

    @pytest.mark.anyio
    async def test_ensure_lockfile_yarn_berry_validate(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "yarn.lock").write_text("__metadata:\n  version: 6\n")
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, LockfileOptions(force_validate=True))
            mock_pm.assert_awaited_once_with(["yarn", "install", "--immutable"], tmp_path)

    @pytest.mark.anyio
    async def test_ensure_lockfile_create_if_missing(self, tmp_path):
        _package_json(tmp_path)
        opts = LockfileOptions(create_if_missing=True, validate_if_present=True)
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, opts)
            mock_pm.assert_awaited_once_with(["npm", "install", "--package-lock-only"], tmp_path)

    @pytest.mark.anyio
    async def test_ensure_lockfile_validate_if_present(self, tmp_path):
        _package_json(tmp_path)
        (tmp_path / "yarn.lock").write_text("# yarn lockfile v1\n")
        opts = LockfileOptions(create_if_missing=True, validate_if_present=True)
        with patch(_NODE_PM, new_callable=AsyncMock) as mock_pm:
            await NodeProvider().ensure_lockfile(tmp_path, opts)
            mock_pm.assert_awaited_once_with(
                ["yarn", "install", "--frozen-lockfile"], tmp_path
            )

    @pytest.mark.anyio
    async def test_ensure_lockfile_failure_is_fatal(self, tmp_path):
        _package_json(tmp_path)
        err = PackageManagerInvocationError(["npm", "ci", "--dry-run"], 1, "boom")
        with patch(_NODE_PM, new_callable=AsyncMock, side_effect=err):
            with pytest.raises(PackageManagerInvocationError):
                await NodeProvider().ensure_lockfile(
                    tmp_path, LockfileOptions(force_validate=True)
                )


# ── GoProvider ───────────────────────────────────────────────────────────


class TestGoProvider:
    GO_MOD = "module example.com/m\n\ngo 1.21\n\nrequire github.com/a/b v1.2.3\n"
    GO_SUM = "github.com/a/b v1.2.4 h1:x=\ngithub.com/a/b v1.2.4/go.mod h1:y=\n"

    def test_detect(self, tmp_path):
        assert GoProvider().detect(tmp_path) is None
        (tmp_path / "go.mod").write_text(self.GO_MOD)
        assert GoProvider().detect(tmp_path).provider_id == "go"

    @pytest.mark.anyio
    async def test_gather_prefers_go_sum(self, tmp_path):
        (tmp_path / "go.mod").write_text(self.GO_MOD)
        (tmp_path / "go.sum").write_text(self.GO_SUM)
        deps = await GoProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("github.com/a/b", "1.2.4", "Go")]

    @pytest.mark.anyio
    async def test_gather_falls_back_to_go_mod(self, tmp_path):
        (tmp_path / "go.mod").write_text(self.GO_MOD)
        deps = await GoProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("github.com/a/b", "1.2.3", "Go")]

    @pytest.mark.anyio
    async def test_ensure_lockfile_requires_go_mod(self, tmp_path):
        with pytest.raises(ManifestMissing):
            await GoProvider().ensure_lockfile(tmp_path, LockfileOptions())

    @pytest.mark.anyio
    async def test_refresh_runs_tidy(self, tmp_path):
        (tmp_path / "go.mod").write_text(self.GO_MOD)
        with patch(_GO_PM, new_callable=AsyncMock) as mock_pm:
            await GoProvider().ensure_lockfile(tmp_path, LockfileOptions(force_refresh=True))
            mock_pm.assert_awaited_once_with(["go", "mod", "tidy"], tmp_path)

    @pytest.mark.anyio
    async def test_validate_runs_verify(self, tmp_path):
        (tmp_path / "go.mod").write_text(self.GO_MOD)
        (tmp_path / "go.sum").write_text(self.GO_SUM)
        with patch(_GO_PM, new_callable=AsyncMock) as mock_pm:
            await GoProvider().ensure_lockfile(tmp_path, LockfileOptions(force_validate=True))
            mock_pm.assert_awaited_once_with(["go", "mod", "verify"], tmp_path)


# ── Python providers ─────────────────────────────────────────────────────


class TestPoetryProvider:
    PYPROJECT = '[tool.poetry]\nname = "app"\n\n[tool.poetry.dependencies]\nrequests = "^2.31"\n'
    LOCK = '[[package]]\nname = "requests"\nversion = "2.31.0"\ncategory = "main"\n'

    def test_detect_needs_poetry_section(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
        assert PoetryProvider().detect(tmp_path) is None
        (tmp_path / "pyproject.toml").write_text(self.PYPROJECT)
        assert PoetryProvider().detect(tmp_path).provider_id == "python-poetry"

    @pytest.mark.anyio
    async def test_gather_lockfile_then_manifest(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(self.PYPROJECT)
        provider = PoetryProvider()
        deps = await provider.gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("requests", "^2.31", "PyPI")]

        (tmp_path / "poetry.lock").write_text(self.LOCK)
        deps = await provider.gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("requests", "2.31.0", "PyPI")]

    @pytest.mark.anyio
    async def test_refresh_runs_poetry_lock(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(self.PYPROJECT)
        with patch(_PY_PM, new_callable=AsyncMock) as mock_pm:
            await PoetryProvider().ensure_lockfile(tmp_path, LockfileOptions(force_refresh=True))
            mock_pm.assert_awaited_once_with(["poetry", "lock", "--no-update"], tmp_path)

    @pytest.mark.anyio
    async def test_validate_runs_poetry_check(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text(self.PYPROJECT)
        (tmp_path / "poetry.lock").write_text(self.LOCK)
        with patch(_PY_PM, new_callable=AsyncMock) as mock_pm:
            await PoetryProvider().ensure_lockfile(tmp_path, LockfileOptions(force_validate=True))
            mock_pm.assert_awaited_once_with(["poetry", "check", "--lock"], tmp_path)


class TestPipProvider:
    def test_detect(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("django==4.2.0\n")
        result = PipProvider().detect(tmp_path)
        assert result.provider_id == "python-pip"
        assert result.confidence == 0.9

    def test_detect_yields_to_pyproject(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("django==4.2.0\n")
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
        assert PipProvider().detect(tmp_path) is None

    @pytest.mark.anyio
    async def test_validate_only_warns(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("django==4.2.0\n")
        with patch(_PY_PM, new_callable=AsyncMock) as mock_pm:
            await PipProvider().ensure_lockfile(tmp_path, LockfileOptions(force_validate=True))
            mock_pm.assert_not_called()

    @pytest.mark.anyio
    async def test_ensure_requires_requirements(self, tmp_path):
        with pytest.raises(ManifestMissing):
            await PipProvider().ensure_lockfile(tmp_path, LockfileOptions())

    @pytest.mark.anyio
    async def test_gather(self, tmp_path):
        (tmp_path / "requirements.txt").write_text("Django==4.2.0\n")
        deps = await PipProvider().gather_dependencies(DirectoryInput(tmp_path))
        assert deps == [Dependency("django", "4.2.0", "PyPI")]


# ── run_package_manager ──────────────────────────────────────────────────


class TestRunPackageManager:
    @pytest.mark.anyio
    async def test_success_returns_stdout(self, tmp_path):
        proc = MagicMock()
        proc.returncode = 0
        proc.communicate = AsyncMock(return_value=(b"ok\n", b""))
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as mock_exec:
            out = await run_package_manager(["npm", "ci"], tmp_path)
        assert out == "ok\n"
        assert mock_exec.call_args[0] == ("npm", "ci")
        assert mock_exec.call_args[1]["cwd"] == str(tmp_path)

    @pytest.mark.anyio
    async def test_nonzero_exit(self, tmp_path):
        proc = MagicMock()
        proc.returncode = 1
        proc.communicate = AsyncMock(return_value=(b"", b"lockfile out of date\n"))
        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            with pytest.raises(PackageManagerInvocationError) as exc_info:
                await run_package_manager(["pnpm", "install", "--frozen-lockfile"], tmp_path)
        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "lockfile out of date"
        assert exc_info.value.cmd == ["pnpm", "install", "--frozen-lockfile"]

    @pytest.mark.anyio
    async def test_missing_executable(self, tmp_path):
        with patch(
            "asyncio.create_subprocess_exec",
            AsyncMock(side_effect=FileNotFoundError("no such file: yarn")),
        ):
            with pytest.raises(PackageManagerInvocationError) as exc_info:
                await run_package_manager(["yarn", "install"], tmp_path)
        assert exc_info.value.returncode is None
