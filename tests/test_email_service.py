"""
Status email dispatcher tests.

Covers:
    - Status phrase table and fallback
    - Disabled mode: logs, reports success, no network call
    - Live mode: SendGrid payload, failure handling
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from email_service import EmailDispatcher, build_status_email, status_phrase


@pytest.mark.parametrize("status,phrase", [
    ("pending", "has been received and is being reviewed"),
    ("in_progress", "is now being worked on by our team"),
    ("resolved", "has been resolved"),
    ("archived", "status has been updated to archived"),
])
def test_status_phrase(status, phrase):
    assert status_phrase(status) == phrase


def test_build_status_email():
    subject, text, html = build_status_email("Pothole on Elm St", "pending", "in_progress")
    assert subject == "Report Update: Pothole on Elm St"
    assert text == 'Your report "Pothole on Elm St" is now being worked on by our team.'
    assert "in progress" in html
    assert "Your report &quot;Pothole on Elm St&quot; is now being worked on by our team." in html


def test_html_body_escapes_report_title():
    subject, text, html = build_status_email('<script>alert("x")</script>', "pending", "resolved")
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert text == 'Your report "<script>alert("x")</script>" has been resolved.'
    assert subject == 'Report Update: <script>alert("x")</script>'


def test_disabled_mode_makes_no_network_call(caplog):
    dispatcher = EmailDispatcher(api_key=None)
    with patch("email_service.requests.post") as post:
        with caplog.at_level("INFO", logger="email_service"):
            assert dispatcher.send_status_notification("a@example.com", "Report", "", "pending") is True
    post.assert_not_called()
    assert not dispatcher.enabled
    assert "Email would be sent to a@example.com" in caplog.text


def test_empty_key_means_disabled():
    assert EmailDispatcher(api_key="").enabled is False


def test_live_mode_posts_to_sendgrid():
    dispatcher = EmailDispatcher(api_key="SG.key", from_email="city@example.com", api_url="https://mail.test/send", timeout=3)
    response = MagicMock()
    with patch("email_service.requests.post", return_value=response) as post:
        assert dispatcher.send_status_notification("a@example.com", "Report", "pending", "resolved") is True

    args, kwargs = post.call_args
    assert args == ("https://mail.test/send",)
    assert kwargs["headers"] == {"Authorization": "Bearer SG.key"}
    assert kwargs["timeout"] == 3
    payload = kwargs["json"]
    assert payload["personalizations"] == [{"to": [{"email": "a@example.com"}]}]
    assert payload["from"] == {"email": "city@example.com"}
    assert payload["subject"] == "Report Update: Report"
    assert payload["content"][0] == {"type": "text/plain", "value": 'Your report "Report" has been resolved.'}
    response.raise_for_status.assert_called_once()


def test_live_mode_http_error_returns_false():
    dispatcher = EmailDispatcher(api_key="SG.key")
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
    with patch("email_service.requests.post", return_value=response):
        assert dispatcher.send_status_notification("a@example.com", "Report", "", "pending") is False


def test_live_mode_connection_error_returns_false():
    dispatcher = EmailDispatcher(api_key="SG.key")
    with patch("email_service.requests.post", side_effect=requests.ConnectionError("unreachable")):
        assert dispatcher.send("a@example.com", "Subject", text="body") is False


def test_from_settings():
    settings = MagicMock(
        SENDGRID_API_KEY="SG.key",
        FROM_EMAIL="city@example.com",
        SENDGRID_API_URL="https://mail.test/send",
        EMAIL_TIMEOUT_SECONDS=5.0,
        APP_NAME="Springfield Reports",
    )
    dispatcher = EmailDispatcher.from_settings(settings)
    assert dispatcher.enabled
    assert dispatcher.from_email == "city@example.com"
    assert "Springfield Reports Team" in build_status_email("r", "", "pending", dispatcher.app_name)[2]
