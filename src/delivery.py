# SPDX-License-Identifier: GPL-3.0-only
"""Delivery coordinator: proactive and reactive code delivery."""

import datetime
import math
from dataclasses import dataclass
from typing import Callable, Optional

from base_logger import get_logger, mask_phone_number
from src import chat_links, verification_requests
from src.db_models import ApiClient, VerificationRequest
from src.errors import DeliveryError
from src.phone_number import normalize_phone_number
from src.rate_limit import check_hourly_limit, check_resend_throttle
from src.telegram import send_otp_message
from src.types import VerificationStatus
from src.utils import get_configs

logger = get_logger(__name__)

BOT_USERNAME = get_configs("BOT_USERNAME", default_value="YourBotUsername")


def default_bot_link():
    """Link users follow to share their contact with the bot."""
    return f"https://t.me/{BOT_USERNAME}"


@dataclass
class VerificationStarted:
    """Outcome of starting (or resending) a verification."""

    request: VerificationRequest
    delivered_proactively: bool
    fallback_hint: Optional[str] = None

    @property
    def request_id(self):
        return self.request.id

    @property
    def phone_number(self):
        return self.request.phone_number

    @property
    def expires_at(self):
        return self.request.date_expires


class DeliveryCoordinator:
    """
    Starts verifications and delivers their codes.

    A code is pushed straight away when the phone number already has a chat
    link. Otherwise the request waits in ``pending`` until the user shares
    their contact with the bot, which is when the code gets generated.

    Args:
        system_client (ApiClient): The platform's own client, used for
            account flows that have no third-party caller.
        send_code (callable): ``(chat_id, code, service_name, minutes) ->
            (success, error)``.
        bot_link (str, optional): Where users are sent to link their chat.
    """

    def __init__(
        self,
        system_client: ApiClient,
        send_code: Callable = send_otp_message,
        bot_link: Optional[str] = None,
    ):
        self.system_client = system_client
        self.send_code = send_code
        self.bot_link = bot_link or default_bot_link()

    def start_verification(
        self, phone_number, client=None, service_name=None, resend=False
    ) -> VerificationStarted:
        """
        Create a verification request and deliver its code when possible.

        Args:
            phone_number (str): Raw phone number.
            client (ApiClient, optional): Requesting party, defaults to the
                system client.
            service_name (str, optional): Label shown with the code.
            resend (bool): Apply the resend cooldown before creating.

        Raises:
            ValidationError: If the phone number is invalid.
            RateLimitError: If the hourly cap is reached.
            ThrottledError: If ``resend`` and the cooldown has not elapsed.
        """
        client = client or self.system_client
        normalized_phone = normalize_phone_number(phone_number)

        check_hourly_limit(normalized_phone, client)
        if resend:
            check_resend_throttle(normalized_phone, client)

        chat_link = chat_links.lookup_link(normalized_phone)
        request = verification_requests.create(
            normalized_phone, client, service_name=service_name, chat_link=chat_link
        )

        if request.status != VerificationStatus.CODE_SENT.value:
            return VerificationStarted(request, False, self.bot_link)

        try:
            self.deliver(chat_link.chat_id, request)
        except DeliveryError as e:
            logger.warning(
                "Proactive delivery to %s failed, falling back to manual linking: %s",
                mask_phone_number(normalized_phone),
                e,
            )
            request = verification_requests.revert_to_pending(request)
            return VerificationStarted(request, False, self.bot_link)

        logger.info("OTP sent proactively to %s", mask_phone_number(normalized_phone))
        return VerificationStarted(request, True)

    def resend_verification(self, phone_number, client=None, service_name=None):
        """Start a fresh verification, subject to the resend cooldown."""
        return self.start_verification(
            phone_number, client=client, service_name=service_name, resend=True
        )

    def handle_chat_linked(
        self, phone_number, chat_id, first_name=None, last_name=None, username=None
    ):
        """
        Record a chat link and deliver the code of a waiting request.

        The caller must have checked that the shared contact belongs to the
        sender of the event.

        Returns:
            VerificationRequest | None: The request whose code was delivered,
            or None when no request was waiting.

        Raises:
            ValidationError: If the phone number is invalid.
            DeliveryError: If the code could not be delivered. The request
                goes back to ``pending`` so that sharing the contact again
                delivers a fresh code.
        """
        normalized_phone = normalize_phone_number(phone_number)
        chat_links.upsert_link(
            normalized_phone,
            chat_id,
            first_name=first_name,
            last_name=last_name,
            username=username,
        )

        request = verification_requests.activate_from_chat_link(normalized_phone)
        if request is None:
            return None

        try:
            self.deliver(chat_id, request)
        except DeliveryError:
            verification_requests.revert_to_pending(request)
            raise
        return request

    def deliver(self, chat_id, request):
        """Send a request's code, raising DeliveryError on failure."""
        remaining = (request.date_expires - datetime.datetime.now()).total_seconds()
        expires_in_minutes = max(1, math.ceil(remaining / 60))

        success, error = self.send_code(
            chat_id, request.otp_code, request.display_service_name, expires_in_minutes
        )
        if not success:
            raise DeliveryError(error or DeliveryError.default_message)
