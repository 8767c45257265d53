"""Tests for authentik_deploy.redact - secret redaction in text and log records."""

import logging

import authentik_deploy.redact as redact_module
from authentik_deploy.redact import SecretRedactingFilter, redact_secrets, register_secret


def _reset_cache():
    """Reset the module-level pattern cache so env changes take effect."""
    redact_module._patterns = None


# ── redact_secrets ──────────────────────────────────────────────


def test_redact_secrets_replaces_env_value(monkeypatch):
    monkeypatch.setenv("OM_PASSWORD", "SuperSecretOpsMan123")
    _reset_cache()

    text = "Logging in with SuperSecretOpsMan123 to opsman"
    assert redact_secrets(text) == "Logging in with *** to opsman"


def test_redact_secrets_short_values_ignored(monkeypatch):
    monkeypatch.setenv("OM_PASSWORD", "short")
    _reset_cache()

    text = "Password is short and should not be redacted"
    assert redact_secrets(text) == text


def test_redact_secrets_no_env_vars(monkeypatch):
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    _reset_cache()

    text = "Nothing secret here"
    assert redact_secrets(text) == text


def test_registered_secret_is_redacted(monkeypatch):
    for var in redact_module._SECRET_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    redact_secrets("warm the cache")

    register_secret("s3-secret-key-value")
    register_secret("abc")
    register_secret(None)

    assert redact_secrets("key=s3-secret-key-value token=abc") == "key=*** token=abc"


def test_longest_secret_matched_first(monkeypatch):
    monkeypatch.delenv("OM_PASSWORD", raising=False)
    monkeypatch.delenv("BOSH_CLIENT_SECRET", raising=False)
    register_secret("password1")
    register_secret("password1-extended")

    assert redact_secrets("x=password1-extended") == "x=***"


# ── SecretRedactingFilter ────────────────────────────────────────


def test_filter_redacts_fstring_message(monkeypatch):
    monkeypatch.setenv("BOSH_CLIENT_SECRET", "director-client-secret")
    _reset_cache()

    record = logging.LogRecord("test", logging.INFO, "", 0, "secret=director-client-secret", None, None)
    assert SecretRedactingFilter().filter(record) is True
    assert record.msg == "secret=***"


def test_filter_redacts_percent_args(monkeypatch):
    monkeypatch.setenv("OM_PASSWORD", "opsman-password")
    _reset_cache()

    record = logging.LogRecord("test", logging.INFO, "", 0, "pw=%s port=%d", ("opsman-password", 443), None)
    SecretRedactingFilter().filter(record)
    assert record.getMessage() == "pw=*** port=443"
