"""Bearer credential resolution for the GitHub advisory graph."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence

import structlog

from depsentinel.errors import CredentialMissing

log = structlog.get_logger("depsentinel.engine")

_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_HELPER_CMD = ("gh", "auth", "token")
_HELPER_TIMEOUT = 5.0


class CredentialCache:
    """Resolve the GitHub token once per process.

    Order: ``GITHUB_TOKEN`` / ``GH_TOKEN`` environment variables, then the
    ``gh auth token`` helper. The first successful value is cached until
    :meth:`reset` is called.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        helper_cmd: Sequence[str] = _HELPER_CMD,
    ) -> None:
        self._env = env
        self._helper_cmd = list(helper_cmd)
        self._token: str | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> str | None:
        return self._token

    def reset(self) -> None:
        self._token = None
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        """Return the cached token, resolving it on first use.

        Raises :class:`CredentialMissing` if neither source yields one.
        """
        if self._token:
            return self._token
        async with self._lock:
            if self._token:
                return self._token
            token = self._from_env() or await self._from_helper()
            if not token:
                raise CredentialMissing(
                    "GitHub token required for advisory queries "
                    "(set GITHUB_TOKEN or run `gh auth login`)"
                )
            self._token = token
            return token

    def _from_env(self) -> str | None:
        env = self._env if self._env is not None else os.environ
        for name in _ENV_VARS:
            value = env.get(name)
            if value:
                return value.strip()
        return None

    async def _from_helper(self) -> str | None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._helper_cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError:
            log.debug("credentials.helper_unavailable", cmd=self._helper_cmd)
            return None
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=_HELPER_TIMEOUT)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            log.warning("credentials.helper_timeout", cmd=self._helper_cmd)
            return None
        if proc.returncode != 0:
            log.debug("credentials.helper_failed", returncode=proc.returncode)
            return None
        return stdout.decode(errors="replace").strip() or None


# Process-wide default; tests call ``default_credentials.reset()``.
default_credentials = CredentialCache()
