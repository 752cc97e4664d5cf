"""
Retry utilities for handling transient failures.

Only calls to the GitHub REST API are retried (repository metadata lookups).
Configuration errors are never retried.
"""

import requests
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
MAX_WAIT_SECONDS = 60


def should_retry_http_error(exception: BaseException) -> bool:
    """
    Determine if a GitHub REST API error should be retried.

    Retry on:
    - 429 (Secondary rate limit)
    - 403 with X-RateLimit-Remaining: 0 (Primary rate limit exhausted)
    - 500, 502, 503, 504 (Server Errors)

    Do not retry on:
    - 400, 401, 404 and any other 403 (Client Errors)

    Args:
        exception: The exception to check

    Returns:
        True if the error should be retried, False otherwise
    """
    if not isinstance(exception, requests.exceptions.HTTPError) or exception.response is None:
        return False

    response = exception.response
    if response.status_code == 403:
        return response.headers.get(RATE_LIMIT_REMAINING_HEADER) == "0"
    return response.status_code in RETRYABLE_STATUS_CODES


def wait_for_rate_limit(retry_state: RetryCallState) -> float:
    """
    Wait as long as GitHub asks via Retry-After, else back off exponentially.

    Args:
        retry_state: The retry state from tenacity

    Returns:
        Seconds to sleep before the next attempt, at most MAX_WAIT_SECONDS
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    response = getattr(exception, "response", None)
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if isinstance(retry_after, str) and retry_after.isdigit():
            return min(float(retry_after), MAX_WAIT_SECONDS)
    return backoff(retry_state)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log a retry of a GitHub API call."""
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    response = getattr(exception, "response", None)
    logger.warning(
        "Retrying GitHub API call",
        attempt=retry_state.attempt_number,
        status_code=response.status_code if response is not None else None,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        exception=str(exception) if exception else None,
    )


backoff = wait_exponential(multiplier=1, min=5, max=MAX_WAIT_SECONDS)

#: GitHub REST API retry: 3 attempts, honoring Retry-After, else 5-60s exponential backoff
GITHUB_API_RETRY = retry(
    stop=stop_after_attempt(3),
    wait=wait_for_rate_limit,
    retry=(
        retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout))
        | retry_if_exception(should_retry_http_error)
    ),
    before_sleep=log_retry_attempt,
    reraise=True,
)
