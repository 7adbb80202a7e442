import pytest

from utils.result import AppError, ErrorCode
from utils.retry import RetryOptions, calculate_next_delay, is_retryable_error, with_retry


class Recorder:
    def __init__(self):
        self.delays = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


def flaky(failures: int, error: Exception, value="done"):
    calls = {"count": 0}

    async def fn():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error
        return value

    return fn, calls


@pytest.mark.asyncio
async def test_retries_transient_errors_with_backoff():
    recorder = Recorder()
    fn, calls = flaky(2, AppError("down", ErrorCode.SERVICE_UNAVAILABLE, 503))
    options = RetryOptions(max_attempts=3, initial_delay=1.0, max_delay=10.0, backoff_multiplier=2.0)

    assert await with_retry(fn, options, sleep=recorder.sleep) == "done"
    assert calls["count"] == 3
    assert recorder.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_non_retryable_error_is_raised_immediately():
    recorder = Recorder()
    fn, calls = flaky(5, AppError("bad input", ErrorCode.VALIDATION_ERROR, 400))

    with pytest.raises(AppError) as exc_info:
        await with_retry(fn, RetryOptions(), sleep=recorder.sleep)

    assert exc_info.value.code == "VALIDATION_ERROR"
    assert calls["count"] == 1
    assert recorder.delays == []


@pytest.mark.asyncio
async def test_last_error_raised_when_attempts_exhausted():
    recorder = Recorder()
    fn, calls = flaky(10, AppError("timeout", ErrorCode.TIMEOUT, 504))

    with pytest.raises(AppError):
        await with_retry(fn, RetryOptions(max_attempts=4, initial_delay=5.0, max_delay=8.0), sleep=recorder.sleep)

    assert calls["count"] == 4
    assert recorder.delays == [5.0, 8.0, 8.0]


@pytest.mark.asyncio
async def test_plain_exceptions_are_retried():
    recorder = Recorder()
    fn, calls = flaky(1, ConnectionError("reset"))

    assert await with_retry(fn, RetryOptions(), sleep=recorder.sleep) == "done"
    assert calls["count"] == 2


def test_helpers():
    assert calculate_next_delay(4.0, 2.0, 5.0) == 5.0
    assert is_retryable_error(AppError("x", ErrorCode.NETWORK_ERROR), ["NETWORK_ERROR"])
    assert not is_retryable_error(AppError("x", ErrorCode.VALIDATION_ERROR), ["NETWORK_ERROR"])
    assert not is_retryable_error(ValueError("x"), ["NETWORK_ERROR"])
    assert is_retryable_error(ValueError("x"), None)
