"""Tests for the static credential provider."""

import pytest

from mailwatch.core.credentials import CredentialProvider, StaticTokenProvider


@pytest.mark.asyncio
async def test_static_provider_returns_token():
    """Test that the configured token is handed out and never refreshed."""
    provider = StaticTokenProvider("abc")

    assert await provider.get_access_token() == "abc"
    assert await provider.refresh_on_unauthorized() is False
    assert isinstance(provider, CredentialProvider)


@pytest.mark.asyncio
async def test_static_provider_falls_back_to_settings():
    """Test that the token defaults to GMAIL_ACCESS_TOKEN."""
    provider = StaticTokenProvider()

    assert await provider.get_access_token() == "test-access-token"


def test_static_provider_requires_token(monkeypatch):
    """Test that a missing token is rejected up front."""
    monkeypatch.setattr("mailwatch.core.credentials.settings.GMAIL_ACCESS_TOKEN", None)

    with pytest.raises(ValueError):
        StaticTokenProvider()
