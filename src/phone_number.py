# SPDX-License-Identifier: GPL-3.0-only
"""Phone number normalization."""

import re

import phonenumbers

from base_logger import get_logger
from src.errors import ValidationError

logger = get_logger(__name__)

INVALID_PHONE_MESSAGE = (
    "Invalid phone number format. Use international format (e.g., +12015550123)."
)


def normalize_phone_number(phone_number: str) -> str:
    """
    Canonicalize a raw phone number to E.164.

    Everything except digits and "+" is stripped and a leading "+" is added
    when missing. A leading "00" international prefix counts as "+". So
    "+1 (201) 555-0123", "12015550123" and "0012015550123" all normalize to
    "+12015550123".

    Args:
        phone_number (str): The raw phone number as typed or shared.

    Returns:
        str: The E.164 representation.

    Raises:
        ValidationError: If the input cannot be assigned to any region.
    """
    if not phone_number or not isinstance(phone_number, str):
        raise ValidationError("Phone number is required.")

    cleaned = re.sub(r"[^\d+]", "", phone_number)
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    if not cleaned.startswith("+"):
        cleaned = "+" + cleaned

    try:
        parsed_number = phonenumbers.parse(cleaned)
    except phonenumbers.phonenumberutil.NumberParseException as e:
        logger.debug("Phone number parse error: %s", e)
        raise ValidationError(INVALID_PHONE_MESSAGE) from e

    if not phonenumbers.is_valid_number(parsed_number):
        raise ValidationError(INVALID_PHONE_MESSAGE)

    return phonenumbers.format_number(
        parsed_number, phonenumbers.PhoneNumberFormat.E164
    )
