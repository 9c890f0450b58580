"""Scan error taxonomy. Exactly one of these surfaces per failed scan."""

from __future__ import annotations


class DepSentinelError(Exception):
    """Base scan exception."""


class DetectionFailure(DepSentinelError):
    """No supported ecosystem was found for the given path."""


class ManifestMissing(DepSentinelError):
    """A required manifest file does not exist."""


class LockfileMissing(DepSentinelError):
    """A lockfile is required but was not supplied."""


class LockfileParseError(DepSentinelError):
    """Lockfile or manifest content could not be parsed."""

    def __init__(self, filename: str, reason: str) -> None:
        self.filename = filename
        self.reason = reason
        super().__init__(f"invalid {filename}: {reason}")


class PackageManagerInvocationError(DepSentinelError):
    """A package-manager command failed or could not be started."""

    def __init__(self, cmd: list[str], returncode: int | None, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            msg = f"could not run {cmd[0]!r}: {stderr}"
        else:
            msg = f"command {' '.join(cmd)!r} failed (exit {returncode}): {stderr}"
        super().__init__(msg)


class AdvisorySourceError(DepSentinelError):
    """An advisory source failed after retries or returned a malformed body."""

    def __init__(self, source: str, message: str, status: int | None = None) -> None:
        self.source = source
        self.status = status
        super().__init__(f"{source}: {message}")


class CredentialMissing(DepSentinelError):
    """No bearer credential is available for the advisory graph source."""
