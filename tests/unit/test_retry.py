import asyncio
import logging

import pytest

from conftest import no_sleep


class Flaky:
    """Fails ``failures`` times, then returns "ok"."""

    def __init__(self, failures, exc_type=RuntimeError):
        self.failures = failures
        self.exc_type = exc_type
        self.calls = 0
        self.raised = []

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            err = self.exc_type(f"boom {self.calls}")
            self.raised.append(err)
            raise err
        return "ok"


@pytest.mark.parametrize("failures,ceiling", [(0, 1), (1, 2), (2, 3), (2, 5)])
def test_with_retry_succeeds_after_k_failures(failures, ceiling):
    from hotfeed.http_fetch import with_retry

    op = Flaky(failures)
    result = asyncio.run(with_retry(op, max_attempts=ceiling, base_delay_ms=0, sleep=no_sleep))
    assert result == "ok"
    assert op.calls == failures + 1


@pytest.mark.parametrize("failures,ceiling", [(1, 1), (3, 2), (3, 3)])
def test_with_retry_gives_up_after_ceiling_with_last_error(failures, ceiling):
    from hotfeed.http_fetch import with_retry

    op = Flaky(failures)
    with pytest.raises(RuntimeError) as exc:
        asyncio.run(with_retry(op, max_attempts=ceiling, base_delay_ms=0, sleep=no_sleep))
    assert op.calls == ceiling
    assert exc.value is op.raised[-1]


def test_with_retry_treats_zero_attempts_as_one():
    from hotfeed.http_fetch import with_retry

    op = Flaky(5)
    with pytest.raises(RuntimeError):
        asyncio.run(with_retry(op, max_attempts=0, sleep=no_sleep))
    assert op.calls == 1


def test_with_retry_does_not_retry_other_errors():
    from hotfeed.http_fetch import with_retry

    op = Flaky(2, exc_type=KeyError)
    with pytest.raises(KeyError):
        asyncio.run(with_retry(op, max_attempts=5, retry_on=(RuntimeError,), sleep=no_sleep))
    assert op.calls == 1


def test_with_retry_sleeps_per_attempt_backoff_and_logs(caplog):
    from hotfeed.http_fetch import with_retry

    slept = []

    async def record(seconds):
        slept.append(seconds)

    op = Flaky(2)
    with caplog.at_level(logging.WARNING, logger="hotfeed.http_fetch"):
        asyncio.run(with_retry(op, max_attempts=3, label="fetch x", base_delay_ms=100, max_delay_ms=8000, sleep=record))

    assert len(slept) == 2
    assert 0.05 <= slept[0] < 0.15
    assert 0.1 <= slept[1] < 0.3
    messages = [r.getMessage() for r in caplog.records]
    assert len(messages) == 2
    assert messages[0].startswith("fetch x failed (attempt 1/3), retry in ")
    assert "boom 1" in messages[0]
    assert "(attempt 2/3)" in messages[1]


def test_with_retry_survives_errors_with_broken_str():
    from hotfeed.http_fetch import with_retry

    class Unprintable(RuntimeError):
        def __str__(self):
            raise ValueError("no")

    calls = []

    async def op():
        calls.append(1)
        if len(calls) == 1:
            raise Unprintable()
        return "ok"

    assert asyncio.run(with_retry(op, max_attempts=2, base_delay_ms=0, sleep=no_sleep)) == "ok"
    assert len(calls) == 2
