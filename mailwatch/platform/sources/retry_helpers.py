"""Retry and classification helpers for source API calls.

Provides reusable retry strategies for transient Gmail API failures and the single
mapping from transport failures to the sync error taxonomy.
"""

from typing import Optional

import httpx
from tenacity import retry_if_exception, wait_exponential

from mailwatch.platform.sync.exceptions import (
    AuthorizationRequiredError,
    FatalSyncError,
    ResyncRequiredError,
    RetryLaterError,
    SyncError,
)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# 403 reasons Gmail uses for quota exhaustion rather than permission problems
RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def _forbidden_is_rate_limit(response: httpx.Response) -> bool:
    """Check whether a 403 body carries a Gmail rate-limit reason."""
    try:
        body = response.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    error = body.get("error") or {}
    if not isinstance(error, dict):
        return False
    for detail in error.get("errors", []) or []:
        if isinstance(detail, dict) and detail.get("reason") in RATE_LIMIT_REASONS:
            return True
    return False


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    """Parse a numeric Retry-After header, if any."""
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except (ValueError, TypeError):
        return None


def should_retry_on_rate_limit(exception: BaseException) -> bool:
    """Check if exception is a retryable rate limit or transient server error.

    404 is never retried so call sites can map it (history pruned, message gone).
    401 is never retried here; the client refreshes credentials itself.

    Args:
        exception: Exception to check

    Returns:
        True if this is a status error that should be retried
    """
    if isinstance(exception, httpx.HTTPStatusError):
        response = exception.response
        if response.status_code in RETRYABLE_STATUS_CODES:
            return True
        return response.status_code == 403 and _forbidden_is_rate_limit(response)
    return False


def should_retry_on_timeout(exception: BaseException) -> bool:
    """Check if exception is a timeout that should be retried.

    Args:
        exception: Exception to check

    Returns:
        True if this is a timeout exception
    """
    return isinstance(exception, (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.PoolTimeout))


def should_retry_on_rate_limit_or_timeout(exception: BaseException) -> bool:
    """Combined retry condition for rate limits and timeouts.

    Example:
        @retry(
            stop=stop_after_attempt(3),
            retry=retry_if_rate_limit_or_timeout,
            wait=wait_rate_limit_with_backoff,
            reraise=True,
        )
        async def _get_with_auth(self, url, params=None):
            ...
    """
    return should_retry_on_rate_limit(exception) or should_retry_on_timeout(exception)


def wait_rate_limit_with_backoff(retry_state) -> float:
    """Wait strategy that respects Retry-After for 429s, exponential backoff otherwise.

    For 429 errors:
    - Uses Retry-After header if present, never less than 1s and capped at 120s
    - Falls back to exponential backoff if no header

    For timeouts and 5xx:
    - Exponential backoff: 1s, 2s, 4s, max 10s

    Args:
        retry_state: tenacity retry state

    Returns:
        Number of seconds to wait before retry
    """
    exception = retry_state.outcome.exception()

    if isinstance(exception, httpx.HTTPStatusError) and exception.response.status_code == 429:
        wait_seconds = _retry_after_seconds(exception.response)
        if wait_seconds is not None:
            # Sub-second Retry-After values burn through attempts before the window clears
            return min(max(wait_seconds, 1.0), 120.0)
        return wait_exponential(multiplier=1, min=2, max=30)(retry_state)

    return wait_exponential(multiplier=1, min=1, max=10)(retry_state)


def classify_http_error(
    exception: BaseException, *, resync_on_not_found: bool = False
) -> SyncError:
    """Map a transport failure onto the sync error taxonomy.

    Applied at every call site (profile, listing, history, detail). Errors that are
    already classified pass through unchanged.

    Args:
        exception: Failure raised while talking to the API
        resync_on_not_found: Treat 404 as "history id expired" (history endpoint only)

    Returns:
        The classified ``SyncError`` (not raised)
    """
    if isinstance(exception, SyncError):
        return exception

    if isinstance(exception, httpx.HTTPStatusError):
        response = exception.response
        status = response.status_code
        url = exception.request.url

        if status == 401:
            return AuthorizationRequiredError(f"Credentials rejected by {url}", status_code=status)
        if status == 403:
            if _forbidden_is_rate_limit(response):
                return RetryLaterError(
                    f"Rate limit exceeded at {url}",
                    status_code=status,
                    retry_after=_retry_after_seconds(response),
                )
            return AuthorizationRequiredError(f"Access denied by {url}", status_code=status)
        if status == 404 and resync_on_not_found:
            return ResyncRequiredError(
                f"History start point no longer available at {url}", status_code=status
            )
        if status in RETRYABLE_STATUS_CODES:
            return RetryLaterError(
                f"Transient failure from {url}",
                status_code=status,
                retry_after=_retry_after_seconds(response),
            )
        return FatalSyncError(f"Unexpected response from {url}", status_code=status)

    if isinstance(exception, httpx.TimeoutException):
        return RetryLaterError(f"Request timed out: {exception!r}")

    if isinstance(exception, httpx.TransportError):
        return FatalSyncError(f"Transport error: {exception!r}")

    return FatalSyncError(f"Unexpected error: {exception!r}")


retry_if_rate_limit_or_timeout = retry_if_exception(should_retry_on_rate_limit_or_timeout)
