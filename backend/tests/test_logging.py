"""Tests for log redaction of key material."""
from token_vault.config import settings
from token_vault.logging_config import REDACTED, redact_secrets

from tests.factories import KEY_V1, KEY_V2


def test_configured_keys_are_redacted(monkeypatch):
    monkeypatch.setattr(settings, "GMAIL_TOKEN_ENCRYPTION_KEY", KEY_V1)
    monkeypatch.setattr(settings, "GMAIL_TOKEN_ENCRYPTION_KEY_V2", KEY_V2)

    event = redact_secrets(None, "info", {"event": f"bad key {KEY_V2}", "detail": KEY_V1, "count": 3})

    assert event["event"] == f"bad key {REDACTED}"
    assert event["detail"] == REDACTED
    assert event["count"] == 3


def test_internal_secret_is_redacted(monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_CRON_SECRET", "cron-secret-value")
    event = redact_secrets(None, "info", {"event": "header=cron-secret-value"})
    assert "cron-secret-value" not in event["event"]


def test_short_secret_left_alone(monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_CRON_SECRET", "abc")
    monkeypatch.setattr(settings, "GMAIL_TOKEN_ENCRYPTION_KEY", "")
    monkeypatch.setattr(settings, "GMAIL_TOKEN_ENCRYPTION_KEY_V2", "")
    monkeypatch.setattr(settings, "GMAIL_TOKEN_ENCRYPTION_KEYS", {})
    event = redact_secrets(None, "info", {"event": "abcdef"})
    assert event["event"] == "abcdef"
