# storefront/utils/retry.py
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)
import requests
import redis


def http_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type(requests.RequestException),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )


def wait_until_true(max_wait: float, interval: float = 0.05):
    """
    Re-calls the wrapped function while it returns False, for at most max_wait seconds.
    The last result (False included) is returned instead of raising RetryError.
    """
    return retry(
        stop=stop_after_delay(max_wait),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda acquired: acquired is False),
        retry_error_callback=lambda state: state.outcome.result(),
    )
