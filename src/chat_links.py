# SPDX-License-Identifier: GPL-3.0-only
"""Chat link directory: phone number to Telegram chat mapping."""

import datetime

from base_logger import get_logger, mask_phone_number
from src.db_models import ChatLink

logger = get_logger(__name__)


def upsert_link(phone_number, chat_id, first_name=None, last_name=None, username=None):
    """
    Create or refresh the chat link for a phone number.

    The latest share wins, so a user who moved to another Telegram account
    gets codes on the new chat from then on.

    Args:
        phone_number (str): Normalized E.164 phone number.
        chat_id (int): Telegram chat the contact was shared from.
        first_name (str, optional): Contact first name.
        last_name (str, optional): Contact last name.
        username (str, optional): Telegram username of the sender.

    Returns:
        ChatLink: The stored link.
    """
    now = datetime.datetime.now()
    fields = {
        "chat_id": int(chat_id),
        "first_name": first_name or None,
        "last_name": last_name or None,
        "username": username or None,
        "date_updated": now,
    }

    with ChatLink._meta.database.atomic():
        _, created = ChatLink.get_or_create(
            phone_number=phone_number, defaults={"date_created": now, **fields}
        )
        if not created:
            ChatLink.update(**fields).where(
                ChatLink.phone_number == phone_number
            ).execute()

    logger.info(
        "Chat link %s for %s",
        "created" if created else "updated",
        mask_phone_number(phone_number),
    )
    return ChatLink.get(ChatLink.phone_number == phone_number)


def lookup_link(phone_number):
    """Return the chat link for a phone number, or None."""
    return ChatLink.get_or_none(ChatLink.phone_number == phone_number)
