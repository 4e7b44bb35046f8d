# SPDX-License-Identifier: GPL-3.0-only
"""Telegram Bot API client used to deliver codes and read bot updates."""

import re
from typing import Any, Dict, List, Optional, Tuple

import requests

from base_logger import get_logger
from src.utils import get_bool_config, get_configs

logger = get_logger(__name__)

TELEGRAM_API_URL = get_configs("TELEGRAM_API_URL", default_value="https://api.telegram.org")
MARKDOWN_SPECIAL_CHARS = re.compile(r"([_*`\[])")


class TelegramAPIError(Exception):
    """Raised when the Bot API answers with ``ok: false``."""


def call_bot_api(
    method: str, payload: Optional[Dict[str, Any]] = None, timeout: int = 10
) -> Any:
    """Call a Bot API method and return its ``result``.

    Args:
        method: Bot API method name, e.g. "sendMessage".
        payload: JSON body.
        timeout: Request timeout in seconds.

    Returns:
        The ``result`` field of the response.

    Raises:
        TelegramAPIError: If the bot token is missing or the API rejects the call.
        requests.RequestException: On transport errors.
    """
    bot_token = get_configs("TELEGRAM_BOT_TOKEN")
    if not bot_token:
        raise TelegramAPIError("Bot token not configured")

    url = f"{TELEGRAM_API_URL.rstrip('/')}/bot{bot_token}/{method}"
    response = requests.post(url, json=payload or {}, timeout=timeout)

    try:
        data = response.json()
    except ValueError as e:
        raise TelegramAPIError("Failed to parse response") from e

    if not data.get("ok"):
        raise TelegramAPIError(data.get("description") or f"HTTP {response.status_code}")

    return data.get("result")


def send_message(
    chat_id: int,
    text: str,
    reply_markup: Optional[Dict[str, Any]] = None,
    parse_mode: str = "Markdown",
) -> Tuple[bool, Optional[str]]:
    """
    Send a text message to a chat.

    Returns:
        (success, error): error is None on success.
    """
    payload = {"chat_id": str(chat_id), "text": text, "parse_mode": parse_mode}
    if reply_markup:
        payload["reply_markup"] = reply_markup

    try:
        call_bot_api("sendMessage", payload)
        return True, None
    except TelegramAPIError as e:
        logger.error("Telegram API error: %s", e)
        return False, str(e)
    except requests.RequestException as e:
        logger.error("Error sending Telegram message: %s", e)
        return False, "Failed to send message"


def escape_markdown(text: str) -> str:
    """Escape caller-supplied text for legacy Markdown messages."""
    return MARKDOWN_SPECIAL_CHARS.sub(r"\\\1", text)


def format_otp_message(otp_code: str, service_name: str, expires_in_minutes: int) -> str:
    """Render the verification code message."""
    plural = "s" if expires_in_minutes != 1 else ""
    return (
        "🔐 *New Verification Code*\n\n"
        f"Service: *{escape_markdown(service_name)}*\n\n"
        f"Your code: `{otp_code}`\n\n"
        f"⏱ Expires in {expires_in_minutes} minute{plural}\n\n"
        "_Enter this code in the app/website to verify._"
    )


def send_otp_message(
    chat_id: int, otp_code: str, service_name: str, expires_in_minutes: int
) -> Tuple[bool, Optional[str]]:
    """
    Deliver a verification code to a linked chat.

    Args:
        chat_id: Telegram chat linked to the phone number.
        otp_code: The six-digit code.
        service_name: Service the code is for.
        expires_in_minutes: Remaining validity, shown to the user.

    Returns:
        (success, error): error is None on success.
    """
    if get_bool_config("MOCK_DELIVERY"):
        logger.info("Mock delivery of OTP for %s", service_name)
        return True, None

    success, error = send_message(
        chat_id, format_otp_message(otp_code, service_name, expires_in_minutes)
    )
    if success:
        logger.info("OTP delivered via Telegram for %s", service_name)
    return success, error


def get_updates(offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
    """Long-poll the Bot API for new updates."""
    payload = {"timeout": timeout, "allowed_updates": ["message"]}
    if offset is not None:
        payload["offset"] = offset
    return call_bot_api("getUpdates", payload, timeout=timeout + 10) or []
