"""Configuration settings for mailwatch.

Values are read from the environment (or a local ``.env`` file) once at import time
and exposed through the module-level ``settings`` object.
"""

from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mailwatch settings.

    Attributes:
    ----------
        GMAIL_API_BASE_URL (str): Base URL of the Gmail REST API.
        GMAIL_USER_ID (str): Mailbox owner, ``me`` for the authenticated user.
        GMAIL_LABEL_ID (str): Label watched by listings and history queries.
        GMAIL_ACCESS_TOKEN (Optional[str]): Bearer token for the static credential provider.
        LIST_PAGE_SIZE (int): Page size for full message listings.
        HISTORY_PAGE_SIZE (int): Page size for history (change log) listings.
        DETAIL_FETCH_CONCURRENCY (int): Max in-flight message detail requests.
        OUTPUT_CHANNEL_CAPACITY (int): Capacity of the new-message output channel.
        OUTPUT_CHANNEL_POLICY (str): ``block`` (backpressure) or ``drop`` when the channel is full.
        SYNC_INTERVAL_SECONDS (float): Delay between polling ticks.
        HTTP_TIMEOUT_SECONDS (float): Per-request timeout for the Gmail API.
        HTTP_MAX_ATTEMPTS (int): Attempts per request for transient failures.
        GMAIL_RATE_LIMIT_RPS (float): Client-side request rate ceiling.
        LOG_LEVEL (str): Root log level.
        LOG_JSON (bool): Emit structured JSON log lines instead of plain text.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    GMAIL_API_BASE_URL: str = "https://gmail.googleapis.com/gmail/v1"
    GMAIL_USER_ID: str = "me"
    GMAIL_LABEL_ID: str = "INBOX"
    GMAIL_ACCESS_TOKEN: Optional[str] = None

    LIST_PAGE_SIZE: int = 100
    HISTORY_PAGE_SIZE: int = 500
    DETAIL_FETCH_CONCURRENCY: int = 16

    OUTPUT_CHANNEL_CAPACITY: int = 32
    OUTPUT_CHANNEL_POLICY: Literal["block", "drop"] = "block"

    SYNC_INTERVAL_SECONDS: float = 60.0

    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_MAX_ATTEMPTS: int = 3
    GMAIL_RATE_LIMIT_RPS: float = 40.0

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    @field_validator(
        "LIST_PAGE_SIZE",
        "HISTORY_PAGE_SIZE",
        "DETAIL_FETCH_CONCURRENCY",
        "OUTPUT_CHANNEL_CAPACITY",
        "HTTP_MAX_ATTEMPTS",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Reject zero or negative sizes and limits."""
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("SYNC_INTERVAL_SECONDS", "HTTP_TIMEOUT_SECONDS", "GMAIL_RATE_LIMIT_RPS")
    @classmethod
    def validate_positive_float(cls, v: float) -> float:
        """Reject zero or negative durations and rates."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("GMAIL_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the API base URL so paths can be appended with a single slash."""
        return v.rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Uppercase the log level name."""
        return v.upper()


settings = Settings()
