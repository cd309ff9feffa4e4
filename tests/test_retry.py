from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from auditor.config import settings
from auditor.models.errors import AuditError, Err, ErrorKind, Ok
from auditor.services.retry import is_rate_limited, run_stage, with_retry


class FakeRateLimitError(Exception):
    def __init__(self, message: str = "Too Many Requests"):
        super().__init__(message)
        self.status_code = 429


def _counting(outcomes: list):
    calls: list[int] = []

    async def operation():
        calls.append(len(calls) + 1)
        outcome = outcomes[len(calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return operation, calls


def test_is_rate_limited_detects_status_and_marker():
    assert is_rate_limited(FakeRateLimitError())
    assert is_rate_limited(RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded"))
    assert not is_rate_limited(RuntimeError("connection reset"))
    server_error = Exception("server error")
    server_error.status_code = 500
    assert not is_rate_limited(server_error)


@pytest.mark.asyncio
async def test_rate_limit_then_success_runs_twice():
    operation, calls = _counting([FakeRateLimitError(), "done"])
    notices: list[str] = []

    with (
        patch("auditor.services.retry.asyncio.sleep", new=AsyncMock()) as sleep,
        patch.object(settings, "rate_limit_retry_delay_ms", 3000),
    ):
        result = await with_retry(operation, notices.append)

    assert result == "done"
    assert calls == [1, 2]
    assert len(notices) == 1
    sleep.assert_awaited_once_with(3.0)


@pytest.mark.asyncio
async def test_default_delay_follows_configured_setting():
    operation, _ = _counting([FakeRateLimitError(), "done"])

    with (
        patch("auditor.services.retry.asyncio.sleep", new=AsyncMock()) as sleep,
        patch.object(settings, "rate_limit_retry_delay_ms", 1500),
    ):
        await with_retry(operation)

    sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_rate_limit_twice_surfaces_second_failure():
    second = FakeRateLimitError("still limited")
    operation, calls = _counting([FakeRateLimitError(), second])

    with patch("auditor.services.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(FakeRateLimitError) as excinfo:
            await with_retry(operation)

    assert excinfo.value is second
    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_other_failure_is_not_retried():
    operation, calls = _counting([ValueError("bad request"), "unused"])

    with patch("auditor.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(ValueError):
            await with_retry(operation)

    assert calls == [1]
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_stage_folds_failures_into_err():
    no_data = AuditError(ErrorKind.NO_RESEARCH_DATA, "empty")
    operation, _ = _counting([no_data])
    outcome = await run_stage(operation, delay_s=0)
    assert isinstance(outcome, Err)
    assert outcome.error is no_data

    operation, calls = _counting([FakeRateLimitError(), FakeRateLimitError()])
    outcome = await run_stage(operation, delay_s=0)
    assert isinstance(outcome, Err)
    assert outcome.kind == ErrorKind.RATE_LIMITED
    assert calls == [1, 2]

    operation, _ = _counting([ConnectionError("boom")])
    outcome = await run_stage(operation, delay_s=0)
    assert isinstance(outcome, Err)
    assert outcome.kind == ErrorKind.UPSTREAM_UNKNOWN

    operation, _ = _counting(["fine"])
    assert await run_stage(operation, delay_s=0) == Ok(value="fine")
