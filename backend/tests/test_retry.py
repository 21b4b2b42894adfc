import asyncio
import errno

import pytest

from softzen.errors import NetworkError, NotFoundError, ValidationError
from softzen.retry import Retrier, RetryPolicy, RetryState, is_retryable, status_code_for, with_retry


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class Flaky:
    """Fails ``failures`` times with ``exc`` before returning ``value``."""

    def __init__(self, failures, exc, value="ok"):
        self.failures = failures
        self.exc = exc
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return self.value


class UpstreamError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


def test_delay_doubles_and_is_capped():
    policy = RetryPolicy()
    assert [policy.delay_for(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_transient_failure_is_retried_until_success():
    sleep = FakeSleep()
    op = Flaky(2, ConnectionResetError("connection reset by peer"))
    retrier = Retrier(sleep=sleep)

    assert await retrier.run(op) == "ok"
    assert op.calls == 3
    assert sleep.delays == [1.0, 2.0]
    assert retrier.state is RetryState.SUCCEEDED


@pytest.mark.asyncio
async def test_exhausted_budget_raises_retryable_network_error():
    sleep = FakeSleep()
    op = Flaky(10, TimeoutError("read timeout"))

    with pytest.raises(NetworkError) as excinfo:
        await with_retry(op, sleep=sleep)

    assert op.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert excinfo.value.is_retryable is True
    assert "(after 4 attempts)" in excinfo.value.message
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_max_retries_override():
    sleep = FakeSleep()
    op = Flaky(10, ConnectionRefusedError())

    with pytest.raises(NetworkError):
        await with_retry(op, 1, sleep=sleep)
    assert op.calls == 2


@pytest.mark.asyncio
async def test_non_transient_failure_is_not_retried():
    sleep = FakeSleep()
    op = Flaky(1, KeyError("missing"))

    with pytest.raises(NetworkError) as excinfo:
        await with_retry(op, sleep=sleep)

    assert op.calls == 1
    assert sleep.delays == []
    assert excinfo.value.is_retryable is False


@pytest.mark.asyncio
@pytest.mark.parametrize("exc", [ValidationError("bad", "age", "OUT_OF_RANGE"), NotFoundError("gone")])
async def test_domain_errors_pass_through_unwrapped(exc):
    op = Flaky(1, exc)
    with pytest.raises(type(exc)) as excinfo:
        await with_retry(op, sleep=FakeSleep())
    assert excinfo.value is exc
    assert op.calls == 1


@pytest.mark.asyncio
async def test_sync_operations_are_supported():
    assert await with_retry(lambda: 41 + 1, sleep=FakeSleep()) == 42


@pytest.mark.asyncio
async def test_upstream_status_is_preserved():
    op = Flaky(10, UpstreamError("bad gateway", 502))
    with pytest.raises(NetworkError) as excinfo:
        await with_retry(op, 0, sleep=FakeSleep())
    assert excinfo.value.status_code == 502
    assert excinfo.value.is_retryable is True


def test_classification():
    assert is_retryable(asyncio.TimeoutError())
    assert is_retryable(RuntimeError("Connection pool exhausted"))
    assert is_retryable(OSError(errno.ECONNRESET, "reset"))
    assert is_retryable(UpstreamError("unavailable", 503))
    assert not is_retryable(UpstreamError("bad request", 400))
    assert not is_retryable(ValueError("invalid literal"))

    try:
        try:
            raise ConnectionResetError("reset")
        except ConnectionResetError as inner:
            raise RuntimeError("query failed") from inner
    except RuntimeError as outer:
        assert is_retryable(outer)


def test_status_code_defaults_to_500():
    assert status_code_for(ValueError("x")) == 500
    assert status_code_for(UpstreamError("not found upstream", 404)) == 404
