"""Shared retry policy for advisory-source HTTP calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from depsentinel.errors import AdvisorySourceError

log = structlog.get_logger("depsentinel.engine")

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt count, backoff bounds and per-attempt timeout (seconds)."""

    attempts: int = 3
    min_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float = 30.0

    def backoff(self, attempt: int) -> float:
        """Delay after the 0-based *attempt* failed."""
        return min(self.max_delay, self.min_delay * (2**attempt))


DEFAULT_POLICY = RetryPolicy()


def _retry_after(response: httpx.Response, policy: RetryPolicy) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = int(value)
    except (ValueError, TypeError):
        return None
    if seconds <= 0:
        return None
    return float(min(seconds, policy.max_delay))


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    source: str,
    policy: RetryPolicy = DEFAULT_POLICY,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request with exponential backoff on 429, 5xx and timeouts.

    Other 4xx responses fail immediately. Every failure surfaces as
    :class:`AdvisorySourceError` once attempts are exhausted.
    """
    last_error: AdvisorySourceError | None = None

    for attempt in range(policy.attempts):
        delay = policy.backoff(attempt)
        try:
            resp = await client.request(method, url, timeout=policy.timeout, **kwargs)
        except httpx.TimeoutException as exc:
            log.warning(
                f"{source}.timeout",
                url=url,
                attempt=attempt + 1,
                max_attempts=policy.attempts,
            )
            last_error = AdvisorySourceError(source, f"request timed out: {exc}")
        except httpx.TransportError as exc:
            log.warning(
                f"{source}.transport_error",
                url=url,
                error=str(exc),
                attempt=attempt + 1,
                max_attempts=policy.attempts,
            )
            last_error = AdvisorySourceError(source, f"transport error: {exc}")
        else:
            if resp.is_success:
                return resp
            if resp.status_code not in _RETRYABLE_STATUS:
                raise AdvisorySourceError(
                    source, f"HTTP {resp.status_code}: {resp.reason_phrase}", resp.status_code
                )
            log.warning(
                f"{source}.server_error",
                url=url,
                status=resp.status_code,
                attempt=attempt + 1,
                max_attempts=policy.attempts,
            )
            last_error = AdvisorySourceError(
                source, f"HTTP {resp.status_code}: {resp.reason_phrase}", resp.status_code
            )
            if resp.status_code == 429:
                delay = _retry_after(resp, policy) or delay

        if attempt < policy.attempts - 1:
            await asyncio.sleep(delay)

    assert last_error is not None
    raise last_error
