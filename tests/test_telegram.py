"""Test module for the Telegram Bot API client."""

import pytest
import requests


class FakeResponse:
    def __init__(self, data, status_code=200):
        self._data = data
        self.status_code = status_code

    def json(self):
        return self._data


@pytest.fixture()
def bot_token(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")


def test_send_message(bot_token, monkeypatch):
    """Test a message is posted to the Bot API."""
    from src import telegram

    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse({"ok": True, "result": {"message_id": 1}})

    monkeypatch.setattr(telegram.requests, "post", fake_post)

    assert telegram.send_message(1001, "hi") == (True, None)
    url, payload = calls[0]
    assert url.endswith("/bot123:abc/sendMessage")
    assert payload == {"chat_id": "1001", "text": "hi", "parse_mode": "Markdown"}


def test_send_message_api_error(bot_token, monkeypatch):
    """Test Bot API rejections are returned as errors."""
    from src import telegram

    monkeypatch.setattr(
        telegram.requests,
        "post",
        lambda *args, **kwargs: FakeResponse(
            {"ok": False, "description": "Forbidden: bot was blocked by the user"}, 403
        ),
    )

    assert telegram.send_message(1001, "hi") == (
        False,
        "Forbidden: bot was blocked by the user",
    )


def test_send_message_transport_error(bot_token, monkeypatch):
    """Test network failures are returned as errors."""
    from src import telegram

    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(telegram.requests, "post", fake_post)

    assert telegram.send_message(1001, "hi") == (False, "Failed to send message")


def test_send_message_without_token(monkeypatch):
    """Test sending without a configured token fails cleanly."""
    from src import telegram

    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    success, error = telegram.send_message(1001, "hi")

    assert success is False
    assert error == "Bot token not configured"


def test_format_otp_message():
    """Test the code message names the service and remaining time."""
    from src.telegram import format_otp_message

    message = format_otp_message("123456", "Shop", 1)

    assert "`123456`" in message
    assert "*Shop*" in message
    assert "Expires in 1 minute\n" in message
    assert "Expires in 5 minutes" in format_otp_message("123456", "Shop", 5)


@pytest.mark.parametrize(
    "service_name, rendered",
    [
        ("order_123", "*order\\_123*"),
        ("5* Hotel", "*5\\* Hotel*"),
        ("`[x]`", "*\\`\\[x]\\`*"),
        ("Plain Shop", "*Plain Shop*"),
    ],
)
def test_format_otp_message_escapes_service_name(service_name, rendered):
    """Test caller-supplied service names cannot break message formatting."""
    from src.telegram import format_otp_message

    assert f"Service: {rendered}\n" in format_otp_message("123456", service_name, 5)


def test_send_otp_message_mock_delivery(monkeypatch):
    """Test mock delivery never reaches the network."""
    from src import telegram

    monkeypatch.setenv("MOCK_DELIVERY", "true")

    def fake_post(*args, **kwargs):
        raise AssertionError("network used")

    monkeypatch.setattr(telegram.requests, "post", fake_post)

    assert telegram.send_otp_message(1001, "123456", "Shop", 5) == (True, None)
