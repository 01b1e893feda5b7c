"""
Retry policy for outbound provider calls
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from schoolpay.infrastructure.settings import get_settings
from schoolpay.services.errors import ProviderRateLimitError
from schoolpay.utils.metrics import record_provider_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


_log_before_sleep = before_sleep_log(logger, logging.WARNING)


def _before_sleep(retry_state) -> None:
    record_provider_retry()
    _log_before_sleep(retry_state)


def build_retrying(
    max_attempts: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_max: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """
    Exponential backoff on ProviderRateLimitError only.

    Every other error (including FeatureUnavailableError) propagates on the
    first attempt; after the last attempt the rate-limit error itself is raised.
    """
    settings = get_settings()
    return Retrying(
        stop=stop_after_attempt(max_attempts or settings.PROVIDER_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=backoff_base if backoff_base is not None else settings.PROVIDER_BACKOFF_BASE_SECONDS,
            max=backoff_max if backoff_max is not None else settings.PROVIDER_BACKOFF_MAX_SECONDS,
        ),
        retry=retry_if_exception_type(ProviderRateLimitError),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )


def call_with_retry(retrying: Retrying, fn: Callable[..., T], *args, **kwargs) -> T:
    """Run `fn` under a fresh copy of the policy (attempt counters are per call)"""
    return retrying.copy()(fn, *args, **kwargs)
