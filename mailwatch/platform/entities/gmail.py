"""Gmail entity schemas.

Defines the message metadata held in the sync cache:
  - MessageHeaders: the header triple returned by a detail fetch
  - CachedMessage: one immutable cache entry per remote message
"""

from typing import Dict, Iterable

from pydantic import BaseModel, ConfigDict, Field

# Headers requested from users.messages.get (format=metadata)
METADATA_HEADERS = ("To", "From", "Subject")


class MessageHeaders(BaseModel):
    """Headers of a single Gmail message.

    Each header is an empty string when the message does not carry it.

    Reference: https://developers.google.com/gmail/api/reference/rest/v1/users.messages/get
    """

    model_config = ConfigDict(frozen=True)

    to: str = Field(default="", description="Value of the To header")
    sender: str = Field(default="", description="Value of the From header")
    subject: str = Field(default="", description="Value of the Subject header")

    @classmethod
    def from_payload_headers(cls, headers: Iterable[Dict[str, str]]) -> "MessageHeaders":
        """Build from the ``payload.headers`` list of a Gmail message resource.

        Header names are matched case-insensitively; the first occurrence wins.
        """
        values: Dict[str, str] = {}
        for header in headers:
            name = (header.get("name") or "").lower()
            if name in ("to", "from", "subject") and name not in values:
                values[name] = header.get("value") or ""
        return cls(
            to=values.get("to", ""),
            sender=values.get("from", ""),
            subject=values.get("subject", ""),
        )


class CachedMessage(BaseModel):
    """Schema for a message known to the sync cache.

    Created only from a successful detail fetch and never mutated afterwards; a
    full sync replaces entries instead of patching them. Identity is ``message_id``.
    """

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., min_length=1, description="Native Gmail message ID")
    to: str = Field(default="", description="Value of the To header")
    sender: str = Field(default="", description="Value of the From header")
    subject: str = Field(default="", description="Value of the Subject header")

    @classmethod
    def from_headers(cls, message_id: str, headers: MessageHeaders) -> "CachedMessage":
        """Create a cache entry for a fetched message."""
        return cls(
            message_id=message_id,
            to=headers.to,
            sender=headers.sender,
            subject=headers.subject,
        )

    @property
    def headers(self) -> MessageHeaders:
        """The header triple of this entry."""
        return MessageHeaders(to=self.to, sender=self.sender, subject=self.subject)
