"""
tests/test_startup.py — Unit tests for startup env validation
"""
from __future__ import annotations

import pytest
from loguru import logger

from scpb_site.config import EmailSettings, Settings
from scpb_site.main import _validate_env


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


def test_development_environment_warns(log_messages):
    _validate_env(Settings(_env_file=None, environment="development"))
    assert any("ENVIRONMENT is development" in message for message in log_messages)


def test_production_does_not_warn_about_environment(log_messages):
    _validate_env(Settings(_env_file=None, environment="production"))
    assert not any("ENVIRONMENT is development" in message for message in log_messages)


def test_missing_secrets_are_reported():
    missing = _validate_env(Settings(_env_file=None, environment="production"))
    assert "REVALIDATE_SECRET" in missing
    assert "CAPTCHA__SECRET_KEY" in missing


def test_complete_configuration_reports_nothing():
    config = Settings(
        _env_file=None,
        environment="testing",
        revalidate_secret="s",
        cms={"api_token": "t"},
        email=EmailSettings(resend_api_key="re_x", contact_to="contact@ste-scpb.com"),
    )
    assert _validate_env(config) == []
