"""Single fixed-delay retry for rate-limited LLM calls."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from auditor.config import settings
from auditor.models.errors import AuditError, Err, ErrorKind, Ok

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
RESOURCE_EXHAUSTED_MARKER = "RESOURCE_EXHAUSTED"
RETRY_NOTICE = "Rate limited, retrying in a few seconds..."

Operation = Callable[[], Awaitable[T]]
RetryStatusCallback = Callable[[str], None]


def is_rate_limited(exc: BaseException) -> bool:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and value == RATE_LIMIT_STATUS:
            return True
    return RESOURCE_EXHAUSTED_MARKER in str(exc)


async def with_retry(
    operation: Operation[T],
    on_retry_status: RetryStatusCallback | None = None,
    *,
    delay_s: float | None = None,
) -> T:
    """Run ``operation``; on a rate-limit failure wait ``delay_s`` and run it once more.

    The second attempt's outcome is returned or raised as is. Any other
    failure propagates without retrying. ``delay_s`` defaults to the
    configured ``rate_limit_retry_delay_ms``.
    """
    if delay_s is None:
        delay_s = settings.rate_limit_retry_delay_s
    try:
        return await operation()
    except Exception as exc:
        if not is_rate_limited(exc):
            raise
        logger.warning(f"Rate limited ({exc!r}); retrying once in {delay_s:.1f}s")
        if on_retry_status is not None:
            on_retry_status(RETRY_NOTICE)
    await asyncio.sleep(delay_s)
    return await operation()


def to_audit_error(exc: Exception) -> AuditError:
    if isinstance(exc, AuditError):
        return exc
    if is_rate_limited(exc):
        return AuditError(ErrorKind.RATE_LIMITED, f"Rate limited after retry: {exc}")
    return AuditError(ErrorKind.UPSTREAM_UNKNOWN, f"Upstream failure: {exc!r}")


async def run_stage(
    operation: Operation[T],
    on_retry_status: RetryStatusCallback | None = None,
    *,
    delay_s: float | None = None,
) -> Ok[T] | Err:
    """Run a stage under the retry policy and fold any failure into ``Err``."""
    try:
        value = await with_retry(operation, on_retry_status, delay_s=delay_s)
    except Exception as exc:
        return Err(error=to_audit_error(exc))
    return Ok(value=value)
