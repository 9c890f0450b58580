"""Package-manager command runner for lockfile create/refresh/validate."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from depsentinel.errors import PackageManagerInvocationError

log = structlog.get_logger("depsentinel.engine")


async def run_package_manager(cmd: list[str], cwd: Path) -> str:
    """Run *cmd* (argument vector, no shell) in *cwd* and return its stdout.

    Waits for the process to exit. Raises
    :class:`PackageManagerInvocationError` on a non-zero exit code or when
    the executable cannot be started.
    """
    log.info("pm.run", cmd=cmd, cwd=str(cwd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise PackageManagerInvocationError(cmd, None, str(exc)) from exc

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        log.error("pm.failed", cmd=cmd, returncode=proc.returncode)
        raise PackageManagerInvocationError(
            cmd, proc.returncode, stderr.decode(errors="replace").strip()
        )
    return stdout.decode(errors="replace")
