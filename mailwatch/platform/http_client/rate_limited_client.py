"""HTTP client wrapper that throttles outgoing requests on the client side.

Every request first takes a slot from a ``BaseRateLimiter``; a detail-fetch burst
at full concurrency therefore cannot outrun the API quota. When no slot frees up
in time the request fails the same way a server-side rate limit does.
"""

import math
from typing import Optional

import httpx

from mailwatch.core.logging import ContextualLogger
from mailwatch.platform.rate_limiters._base import BaseRateLimiter


def client_side_rate_limit_error(
    method: str, url: str, limiter: BaseRateLimiter
) -> httpx.HTTPStatusError:
    """Build the 429 raised when the local limiter has no slot.

    ``Retry-After`` is one limiter window, rounded up to whole seconds.
    """
    retry_after = max(1, math.ceil(limiter.RATE_LIMIT_WINDOW_SECONDS))
    request = httpx.Request(method, url)
    response = httpx.Response(
        status_code=429, headers={"Retry-After": str(retry_after)}, request=request
    )
    return httpx.HTTPStatusError(
        f"Client-side rate limit exceeded for {limiter.__class__.__name__}",
        request=request,
        response=response,
    )


class RateLimitedHttpClient:
    """Wraps an ``httpx.AsyncClient`` (composition) and throttles its requests.

    Without a limiter it is a plain pass-through. ``throttled`` counts requests
    rejected locally.
    """

    def __init__(
        self,
        wrapped_client: httpx.AsyncClient,
        rate_limiter: Optional[BaseRateLimiter] = None,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the wrapper.

        Args:
            wrapped_client: Client that sends the requests
            rate_limiter: Limiter to take slots from; no throttling when omitted
            logger: Optional contextual logger
        """
        self._client = wrapped_client
        self._rate_limiter = rate_limiter
        self._logger = logger
        self.throttled = 0

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request once a slot is available.

        Raises:
            httpx.HTTPStatusError: 429 if the limiter gave up waiting for a slot
        """
        if self._rate_limiter is not None:
            try:
                await self._rate_limiter.acquire()
            except TimeoutError as e:
                self.throttled += 1
                if self._logger:
                    self._logger.warning(f"Throttled {method} {url}: {e}")
                raise client_side_rate_limit_error(method, url, self._rate_limiter) from e
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Send a GET request."""
        return await self.request("GET", url, **kwargs)

    async def __aenter__(self) -> "RateLimitedHttpClient":
        await self._client.__aenter__()
        return self

    async def __aexit__(self, *args) -> None:
        await self._client.__aexit__(*args)

    async def aclose(self) -> None:
        """Close the wrapped client."""
        await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        """Whether the wrapped client is closed."""
        return self._client.is_closed
