# SPDX-License-Identifier: GPL-3.0-only
"""Request types accepted at the service boundary.

Each type validates a raw payload in ``from_dict`` so that handlers only
ever see complete, well-typed requests.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from src.errors import ValidationError
from src.types import AccountOTPPurpose

SERVICE_NAME_MAX_LENGTH = 255


def _optional_str(data, key, max_length=None):
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string.")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"'{key}' must be at most {max_length} characters.")
    return value


def _required_str(data, key, message):
    value = _optional_str(data, key)
    if value is None:
        raise ValidationError(message)
    return value


def _request_id(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise ValidationError("Invalid requestId.") from e


def _ensure_dict(data):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


@dataclass(frozen=True)
class SendOTPRequest:
    """Start a verification for a phone number."""

    phone_number: str
    service_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SendOTPRequest":
        data = _ensure_dict(data)
        return cls(
            phone_number=_required_str(data, "phoneNumber", "Phone number is required."),
            service_name=_optional_str(
                data, "serviceName", max_length=SERVICE_NAME_MAX_LENGTH
            ),
        )


@dataclass(frozen=True)
class ResendOTPRequest(SendOTPRequest):
    """Start a fresh verification, subject to the resend cooldown."""


@dataclass(frozen=True)
class VerifyOTPRequest:
    """Submit a code, identified by request id or phone number."""

    code: str
    phone_number: Optional[str] = None
    request_id: Optional[uuid.UUID] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifyOTPRequest":
        data = _ensure_dict(data)
        code = _optional_str(data, "code")
        phone_number = _optional_str(data, "phoneNumber")
        request_id = data.get("requestId")

        if not code or (not phone_number and not request_id):
            raise ValidationError(
                "Code and either phoneNumber or requestId are required."
            )

        return cls(
            code=code,
            phone_number=phone_number,
            request_id=_request_id(request_id) if request_id else None,
        )


@dataclass(frozen=True)
class OTPStatusRequest:
    """Read the state of one request."""

    request_id: uuid.UUID

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OTPStatusRequest":
        data = _ensure_dict(data)
        if not data.get("requestId"):
            raise ValidationError("requestId is required.")
        return cls(request_id=_request_id(data["requestId"]))


@dataclass(frozen=True)
class AccountOTPRequest:
    """Ask for (or re-send) a code for the platform's own account flows."""

    phone_number: str
    purpose: AccountOTPPurpose

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountOTPRequest":
        data = _ensure_dict(data)
        phone_number = _required_str(data, "phoneNumber", "Phone number is required.")
        try:
            purpose = AccountOTPPurpose(data.get("type"))
        except ValueError as e:
            raise ValidationError(
                "Type must be 'registration' or 'password_reset'."
            ) from e
        return cls(phone_number=phone_number, purpose=purpose)


@dataclass(frozen=True)
class ChatLinkedEvent:
    """A contact shared with the bot.

    ``sender_id`` is the Telegram user who sent the message and
    ``contact_user_id`` the user the contact card belongs to. Only a
    contact shared by its owner may link a chat.
    """

    phone_number: str
    chat_id: int
    sender_id: Optional[int]
    contact_user_id: Optional[int]
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_own_contact(self) -> bool:
        return self.sender_id is not None and self.contact_user_id == self.sender_id

    @classmethod
    def from_telegram_message(cls, message: Dict[str, Any]) -> "ChatLinkedEvent":
        message = _ensure_dict(message)
        contact = message.get("contact") or {}
        sender = message.get("from") or {}
        chat = message.get("chat") or {}

        if not contact.get("phone_number"):
            raise ValidationError("Contact has no phone number.")
        if chat.get("id") is None:
            raise ValidationError("Message has no chat.")

        return cls(
            phone_number=str(contact["phone_number"]),
            chat_id=int(chat["id"]),
            sender_id=sender.get("id"),
            contact_user_id=contact.get("user_id"),
            first_name=contact.get("first_name"),
            last_name=contact.get("last_name"),
            username=sender.get("username"),
        )
