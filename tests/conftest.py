"""Shared test fixtures."""

import os
from pathlib import Path

import pytest

from email_dispatch.address import EmailAddress
from email_dispatch.config import ENV_PREFIX, SmtpSettings, load_settings
from email_dispatch.request import EmailRequest, TemplatedEmailRequest
from email_dispatch.transports.mock import MockTransport


@pytest.fixture
def smtp_settings():
    """SMTP settings with a host, credentials and a default sender."""
    return SmtpSettings(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        sender_email="noreply@example.com",
        sender_name="Example Mailer",
    )


@pytest.fixture
def mock_transport():
    """In-memory transport that records sent messages."""
    return MockTransport()


@pytest.fixture
def make_request():
    """Factory for valid content requests."""

    def _make(to="alice@example.com", subject="Hello", text="Hi there", html=None, **kwargs):
        return EmailRequest(
            to=EmailAddress(to),
            subject=subject,
            text_content=text,
            html_content=html,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_templated_request():
    """Factory for valid templated requests."""

    def _make(to="alice@example.com", template_id="welcome", data=None, **kwargs):
        return TemplatedEmailRequest(
            to=EmailAddress(to),
            subject="Welcome",
            template_id=template_id,
            template_content=data if data is not None else {"name": "Alice"},
            **kwargs,
        )

    return _make


@pytest.fixture
def template_dir(tmp_path):
    """Create a template directory with HTML and text variants."""
    template_dir = Path(tmp_path) / "templates"
    template_dir.mkdir()

    (template_dir / "welcome.jinja2").write_text(
        "<html><body><h1>Hello {{ name }}!</h1>"
        "{% if company is defined %}<p>Company: {{ company }}</p>{% endif %}</body></html>"
    )
    (template_dir / "welcome.text.jinja2").write_text(
        "Hello {{ name }}!{% if company is defined %} Company: {{ company }}{% endif %}"
    )
    (template_dir / "receipt.text.jinja2").write_text("Total: {{ data }}")

    return template_dir


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolated environment without EMAIL_DISPATCH_ variables.

    Runs from an empty working directory so no stray ``.env`` or
    ``config.yaml`` is picked up, and clears the settings cache.
    """
    env = {key: value for key, value in os.environ.items() if not key.startswith(ENV_PREFIX)}
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)
    load_settings.cache_clear()
    yield env
    load_settings.cache_clear()
