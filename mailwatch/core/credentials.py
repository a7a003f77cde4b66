"""Credential provider interface.

Token acquisition and storage live outside mailwatch. The HTTP client only asks a
provider for a bearer token, asks it to refresh after a 401, and the monitor tells
it when re-authentication is required.
"""

from typing import Optional, Protocol, runtime_checkable

from mailwatch.core.config import settings
from mailwatch.core.logging import logger


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of OAuth bearer tokens for the Gmail API."""

    async def get_access_token(self) -> str:
        """Return a currently valid access token."""
        ...

    async def refresh_on_unauthorized(self) -> bool:
        """Refresh the token after a 401.

        Returns:
            True if a new token is available and the request should be retried
        """
        ...

    async def on_authorization_required(self) -> None:
        """Called when the mailbox rejected credentials even after a refresh."""
        ...


class StaticTokenProvider:
    """Credential provider backed by a fixed access token.

    Cannot refresh; a rejected token surfaces as an authorization error until the
    process is restarted with a new one.
    """

    def __init__(self, access_token: Optional[str] = None):
        """Initialize the provider.

        Args:
            access_token: Bearer token, defaults to ``settings.GMAIL_ACCESS_TOKEN``

        Raises:
            ValueError: If no token is configured
        """
        access_token = access_token or settings.GMAIL_ACCESS_TOKEN
        if not access_token:
            raise ValueError("No access token configured (set GMAIL_ACCESS_TOKEN)")
        self._access_token = access_token

    async def get_access_token(self) -> str:
        """Return the configured token."""
        return self._access_token

    async def refresh_on_unauthorized(self) -> bool:
        """Static tokens cannot be refreshed."""
        return False

    async def on_authorization_required(self) -> None:
        """Log that a new token must be configured."""
        logger.error("Gmail rejected the configured access token; set a new GMAIL_ACCESS_TOKEN")
