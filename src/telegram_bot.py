# SPDX-License-Identifier: GPL-3.0-only
"""Telegram bot: links chats to phone numbers and hands out waiting codes."""

import time
import traceback

import requests

from base_logger import get_logger, mask_phone_number
from src import telegram
from src.errors import DeliveryError, ValidationError
from src.schemas import ChatLinkedEvent

logger = get_logger(__name__)

POLL_TIMEOUT_SECONDS = 30
POLL_RETRY_SECONDS = 5

WELCOME_MESSAGE = (
    "👋 *Welcome to the OTP Verification Bot!*\n\n"
    "A service has requested to verify your phone number.\n\n"
    "Tap the button below to share your contact and receive your verification code.\n\n"
    "🔒 Your phone number is only used for verification."
)
HELP_MESSAGE = (
    "ℹ️ *How This Works*\n\n"
    "1️⃣ A website or app requests to verify your phone\n"
    "2️⃣ They send you here to get a code\n"
    "3️⃣ Tap /start and share your contact\n"
    "4️⃣ Enter the code you receive back in the app\n\n"
    "🔒 This bot only verifies your phone number.\n"
    "We don't store or share your information."
)
DEFAULT_MESSAGE = "👋 To verify your phone number, tap /start and share your contact."
FOREIGN_CONTACT_MESSAGE = (
    "⚠️ *Security Notice*\n\nPlease share your own contact, not someone else's."
)
INVALID_PHONE_MESSAGE = (
    "❌ *Error*\n\nCould not process your phone number. Please try again."
)
FAILURE_MESSAGE = (
    "❌ *Error*\n\n"
    "Something went wrong while processing your request.\n\n"
    "Please try again later."
)
LINKED_MESSAGE = (
    "✅ *Phone Number Registered!*\n\n"
    "Your phone number has been linked to this bot.\n\n"
    "📲 *Next time*, you'll receive OTP codes automatically here, "
    "no need to share your contact again!\n\n"
    "_No pending verification request found at this time._"
)

CONTACT_KEYBOARD = {
    "keyboard": [[{"text": "📱 Share My Phone Number", "request_contact": True}]],
    "resize_keyboard": True,
    "one_time_keyboard": True,
}


class OTPBot:
    """
    Long-polling bot bound to a delivery coordinator.

    Args:
        coordinator (DeliveryCoordinator): Links chats and delivers codes.
        send_message (callable): ``(chat_id, text, reply_markup=None) ->
            (success, error)``.
        get_updates (callable): ``(offset, timeout) -> list of updates``.
    """

    def __init__(
        self,
        coordinator,
        send_message=telegram.send_message,
        get_updates=telegram.get_updates,
    ):
        self.coordinator = coordinator
        self.send_message = send_message
        self.get_updates = get_updates
        self.offset = None

    def reply(self, chat_id, text, reply_markup=None):
        success, error = self.send_message(chat_id, text, reply_markup=reply_markup)
        if not success:
            logger.error("Failed to reply to chat: %s", error)
        return success

    def handle_update(self, update):
        """Dispatch a single Bot API update."""
        message = update.get("message")
        if not message:
            return

        chat_id = (message.get("chat") or {}).get("id")
        if chat_id is None:
            return

        if message.get("contact"):
            self.handle_contact(message)
            return

        command = (message.get("text") or "").strip().split(" ")[0].split("@")[0]
        if command == "/start":
            self.reply(chat_id, WELCOME_MESSAGE, reply_markup=CONTACT_KEYBOARD)
        elif command == "/help":
            self.reply(chat_id, HELP_MESSAGE)
        else:
            self.reply(chat_id, DEFAULT_MESSAGE)

    def handle_contact(self, message):
        """Link the sender's chat to their number and deliver a waiting code."""
        chat_id = message["chat"]["id"]

        try:
            event = ChatLinkedEvent.from_telegram_message(message)
        except ValidationError as e:
            logger.warning("Discarding contact message: %s", e.message)
            self.reply(chat_id, INVALID_PHONE_MESSAGE)
            return

        if not event.is_own_contact:
            logger.warning("Rejected contact not owned by its sender")
            self.reply(chat_id, FOREIGN_CONTACT_MESSAGE)
            return

        try:
            request = self.coordinator.handle_chat_linked(
                event.phone_number,
                event.chat_id,
                first_name=event.first_name,
                last_name=event.last_name,
                username=event.username,
            )
        except ValidationError:
            logger.warning("Contact shared with an invalid phone number")
            self.reply(chat_id, INVALID_PHONE_MESSAGE)
            return
        except DeliveryError as e:
            logger.error("Could not deliver code after chat link: %s", e.message)
            self.reply(chat_id, FAILURE_MESSAGE)
            return

        if request is None:
            self.reply(chat_id, LINKED_MESSAGE)
            return

        logger.info(
            "Code delivered after chat link for %s (Service: %s)",
            mask_phone_number(request.phone_number),
            request.display_service_name,
        )

    def poll_once(self):
        """Fetch and handle one batch of updates, advancing the offset."""
        updates = self.get_updates(self.offset, POLL_TIMEOUT_SECONDS)

        for update in updates:
            self.offset = update["update_id"] + 1
            try:
                self.handle_update(update)
            except Exception as e:
                traceback.print_exception(type(e), e, e.__traceback__)
                chat_id = ((update.get("message") or {}).get("chat") or {}).get("id")
                if chat_id is not None:
                    self.reply(chat_id, FAILURE_MESSAGE)

        return len(updates)

    def run(self):
        """Poll the Bot API until interrupted."""
        logger.info("Telegram OTP bot running")
        while True:
            try:
                self.poll_once()
            except (telegram.TelegramAPIError, requests.RequestException) as e:
                logger.error("Polling failed: %s", e)
                time.sleep(POLL_RETRY_SECONDS)
