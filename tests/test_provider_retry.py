"""
Tests for the provider retry policy and the job cancel flag
"""

from unittest.mock import MagicMock

import pytest

from schoolpay.services.errors import FeatureUnavailableError, ProviderError, ProviderRateLimitError
from schoolpay.services.provider.retry import build_retrying, call_with_retry
from schoolpay.workers.jobs import RedisCancelFlag


class Flaky:
    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_rate_limit_is_retried_with_growing_waits():
    sleeps = []
    retrying = build_retrying(max_attempts=4, backoff_base=1.0, backoff_max=60.0, sleep=sleeps.append)
    fn = Flaky([ProviderRateLimitError("429"), ProviderRateLimitError("429")])

    assert call_with_retry(retrying, fn) == "ok"
    assert fn.calls == 3
    assert len(sleeps) == 2
    assert sleeps[1] >= sleeps[0] > 0


def test_last_rate_limit_error_is_reraised():
    retrying = build_retrying(max_attempts=2, backoff_base=0, sleep=lambda _: None)
    fn = Flaky([ProviderRateLimitError("429")] * 5)

    with pytest.raises(ProviderRateLimitError):
        call_with_retry(retrying, fn)
    assert fn.calls == 2


@pytest.mark.parametrize("error", [
    ProviderError("bad request", status_code=400),
    FeatureUnavailableError("Dedicated NUBAN is not available for this business"),
])
def test_other_errors_are_not_retried(error):
    sleeps = []
    retrying = build_retrying(max_attempts=5, sleep=sleeps.append)
    fn = Flaky([error])

    with pytest.raises(type(error)):
        call_with_retry(retrying, fn)
    assert fn.calls == 1
    assert sleeps == []


def test_attempt_counter_is_per_call():
    retrying = build_retrying(max_attempts=2, backoff_base=0, sleep=lambda _: None)

    first = Flaky([ProviderRateLimitError("429")])
    second = Flaky([ProviderRateLimitError("429")])

    assert call_with_retry(retrying, first) == "ok"
    assert call_with_retry(retrying, second) == "ok"


def test_cancel_flag_round_trip():
    redis = MagicMock()
    redis.exists.return_value = 0
    flag = RedisCancelFlag(redis, "job-1")

    assert flag.is_set() is False

    flag.set()
    redis.set.assert_called_once()
    assert redis.set.call_args.args[0] == flag.key
    assert "job-1" in flag.key

    redis.exists.return_value = 1
    assert flag.is_set() is True
