"""Unit tests for utility helpers."""

from types import SimpleNamespace

import pytest

from mail_reconciler.utils import is_transient_error, retry_on_failure


class FakeHttpError(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.resp = SimpleNamespace(status=status)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (FakeHttpError(429), True),
        (FakeHttpError(503), True),
        (FakeHttpError(404), False),
        (FakeHttpError(401), False),
        (ConnectionError("reset"), True),
        (TimeoutError(), True),
        (ValueError("bad"), False),
    ],
)
def test_is_transient_error(exc: Exception, expected: bool) -> None:
    assert is_transient_error(exc) is expected


def test_retry_on_failure_retries_until_success() -> None:
    attempts = []

    @retry_on_failure(max_retries=2, delay=0)
    def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("reset")
        return "ok"

    assert flaky() == "ok"
    assert len(attempts) == 3


def test_retry_on_failure_raises_after_exhaustion() -> None:
    attempts = []

    @retry_on_failure(max_retries=1, delay=0)
    def broken() -> None:
        attempts.append(1)
        raise ConnectionError("reset")

    with pytest.raises(ConnectionError):
        broken()
    assert len(attempts) == 2


def test_retry_on_failure_skips_permanent_errors() -> None:
    attempts = []

    @retry_on_failure(max_retries=3, delay=0, should_retry=is_transient_error)
    def not_found() -> None:
        attempts.append(1)
        raise FakeHttpError(404)

    with pytest.raises(FakeHttpError):
        not_found()
    assert len(attempts) == 1
