"""Gmail source implementation of the mailbox transport.

Talks to the Gmail REST API (v1) over httpx:
  * users.getProfile: current history ID
  * users.messages.list: full listing of the watched label
  * users.history.list: message additions since a history ID
  * users.messages.get (format=metadata): To/From/Subject headers

Every failure leaves this module as a classified ``SyncError``.
"""

from typing import Any, Callable, Dict, List, Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt

from mailwatch.core.config import settings
from mailwatch.core.credentials import CredentialProvider
from mailwatch.core.logging import ContextualLogger
from mailwatch.core.logging import logger as default_logger
from mailwatch.platform.entities.gmail import METADATA_HEADERS, MessageHeaders
from mailwatch.platform.http_client.rate_limited_client import RateLimitedHttpClient
from mailwatch.platform.rate_limiters import GmailRateLimiter
from mailwatch.platform.rate_limiters._base import BaseRateLimiter
from mailwatch.platform.sources.retry_helpers import (
    classify_http_error,
    retry_if_rate_limit_or_timeout,
    wait_rate_limit_with_backoff,
)
from mailwatch.platform.sync.exceptions import FatalSyncError
from mailwatch.platform.sync.transport import HistoryPage, MessageListPage

_NO_RATE_LIMIT = object()


def parse_history_id(value: Any) -> int:
    """Parse a Gmail history ID (a decimal string in JSON).

    Raises:
        FatalSyncError: If the value is missing or not a non-negative integer
    """
    if value is None or isinstance(value, bool):
        raise FatalSyncError(f"Malformed history ID: {value!r}")
    try:
        history_id = int(str(value))
    except (TypeError, ValueError) as e:
        raise FatalSyncError(f"Malformed history ID: {value!r}") from e
    if history_id < 0:
        raise FatalSyncError(f"Malformed history ID: {value!r}")
    return history_id


class GmailSource:
    """Gmail mailbox transport.

    Wraps an ``httpx.AsyncClient`` (owned when created here) with client-side rate
    limiting and tenacity retries for transient failures. Credentials come from an
    injected provider; this class never stores tokens.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        base_url: Optional[str] = None,
        user_id: Optional[str] = None,
        label_id: Optional[str] = None,
        list_page_size: Optional[int] = None,
        history_page_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
        wait: Callable = wait_rate_limit_with_backoff,
        rate_limiter: Any = _NO_RATE_LIMIT,
        logger: Optional[ContextualLogger] = None,
    ):
        """Initialize the Gmail source.

        Args:
            credentials: Provider of bearer tokens
            http_client: Client to send requests with; one is created (and owned) if omitted
            base_url: API base URL, defaults to ``settings.GMAIL_API_BASE_URL``
            user_id: Mailbox owner, defaults to ``settings.GMAIL_USER_ID``
            label_id: Watched label, defaults to ``settings.GMAIL_LABEL_ID``; an empty
                string disables label filtering
            list_page_size: Page size for listings, defaults to ``settings.LIST_PAGE_SIZE``
            history_page_size: Page size for history, defaults to ``settings.HISTORY_PAGE_SIZE``
            max_attempts: Attempts per request, defaults to ``settings.HTTP_MAX_ATTEMPTS``
            wait: tenacity wait strategy between attempts
            rate_limiter: Limiter to acquire slots from; the shared ``GmailRateLimiter``
                if omitted, no limiting if None
            logger: Optional contextual logger
        """
        self.credentials = credentials
        self.logger = logger or default_logger.with_context(component="gmail_source")

        self._owns_client = http_client is None
        wrapped = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
        if rate_limiter is _NO_RATE_LIMIT:
            rate_limiter = GmailRateLimiter()
        self._rate_limiter: Optional[BaseRateLimiter] = rate_limiter
        self._client = RateLimitedHttpClient(wrapped, rate_limiter, logger=self.logger)

        base_url = (base_url or settings.GMAIL_API_BASE_URL).rstrip("/")
        self.user_url = f"{base_url}/users/{user_id or settings.GMAIL_USER_ID}"
        self.label_id = settings.GMAIL_LABEL_ID if label_id is None else label_id
        self.list_page_size = list_page_size or settings.LIST_PAGE_SIZE
        self.history_page_size = history_page_size or settings.HISTORY_PAGE_SIZE
        self.max_attempts = max_attempts or settings.HTTP_MAX_ATTEMPTS
        self._wait = wait

    # -----------------------
    # Lifecycle
    # -----------------------
    async def __aenter__(self) -> "GmailSource":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # -----------------------
    # HTTP helpers
    # -----------------------
    async def _auth_headers(self) -> Dict[str, str]:
        access_token = await self.credentials.get_access_token()
        return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

    async def _get_with_auth(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        """Make one authenticated GET request, refreshing credentials once on 401."""
        self.logger.debug(f"GET {url} params={params}")

        response = await self._client.get(url, headers=await self._auth_headers(), params=params)

        if response.status_code == 401:
            self.logger.warning(
                f"Got 401 Unauthorized from Gmail API at {url}, refreshing token..."
            )
            if await self.credentials.refresh_on_unauthorized():
                response = await self._client.get(
                    url, headers=await self._auth_headers(), params=params
                )

        if response.status_code == 429:
            self.logger.warning(
                f"Got 429 Rate Limited from Gmail API at {url}. "
                f"Retry-After: {response.headers.get('Retry-After')}"
            )

        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise FatalSyncError(f"Malformed JSON from {url}", response.status_code) from e
        if not isinstance(data, dict):
            raise FatalSyncError(f"Unexpected JSON payload from {url}", response.status_code)
        return data

    async def _get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        resync_on_not_found: bool = False,
    ) -> Dict:
        """GET with retries for transient failures; every failure leaves classified."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                retry=retry_if_rate_limit_or_timeout,
                wait=self._wait,
                reraise=True,
            ):
                with attempt:
                    return await self._get_with_auth(url, params)
        except (httpx.HTTPError, TimeoutError) as e:
            raise classify_http_error(e, resync_on_not_found=resync_on_not_found) from e

    # -----------------------
    # MailboxTransport
    # -----------------------
    async def get_current_history_id(self) -> int:
        """Return the mailbox's current history ID from users.getProfile."""
        data = await self._get(f"{self.user_url}/profile")
        return parse_history_id(data.get("historyId"))

    async def list_messages(self, page_token: Optional[str] = None) -> MessageListPage:
        """List one page of messages in the watched label.

        users.messages.list carries no history ID, so the page reports none.
        """
        params: Dict[str, Any] = {"maxResults": self.list_page_size}
        if self.label_id:
            params["labelIds"] = self.label_id
        if page_token:
            params["pageToken"] = page_token

        data = await self._get(f"{self.user_url}/messages", params=params)
        messages = data.get("messages", []) or []
        return MessageListPage(
            message_ids=[m["id"] for m in messages if isinstance(m, dict) and m.get("id")],
            next_page_token=data.get("nextPageToken") or None,
        )

    async def list_history(
        self, start_history_id: int, page_token: Optional[str] = None
    ) -> HistoryPage:
        """List one page of message additions since ``start_history_id``.

        Raises:
            ResyncRequiredError: If Gmail no longer retains history from that point (404)
        """
        params: Dict[str, Any] = {
            "startHistoryId": str(start_history_id),
            "historyTypes": "messageAdded",
            "maxResults": self.history_page_size,
        }
        if self.label_id:
            params["labelId"] = self.label_id
        if page_token:
            params["pageToken"] = page_token

        data = await self._get(f"{self.user_url}/history", params=params, resync_on_not_found=True)

        added_ids: List[str] = []
        for record in data.get("history", []) or []:
            for added in record.get("messagesAdded", []) or []:
                message = added.get("message") or {}
                message_id = message.get("id")
                if message_id:
                    added_ids.append(message_id)

        history_id = data.get("historyId")
        return HistoryPage(
            added_message_ids=added_ids,
            next_page_token=data.get("nextPageToken") or None,
            history_id=parse_history_id(history_id) if history_id is not None else None,
        )

    async def get_message_headers(self, message_id: str) -> MessageHeaders:
        """Fetch To/From/Subject of one message (format=metadata)."""
        params = {"format": "metadata", "metadataHeaders": list(METADATA_HEADERS)}
        data = await self._get(f"{self.user_url}/messages/{message_id}", params=params)
        payload = data.get("payload") or {}
        return MessageHeaders.from_payload_headers(payload.get("headers", []) or [])
