# SPDX-License-Identifier: GPL-3.0-only
"""Base logger configuration."""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT,
)


def get_logger(name: str = None) -> logging.Logger:
    """Return a named logger sharing the service-wide configuration.

    Args:
        name: Logger name, usually the caller's ``__name__``.

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)


def mask_phone_number(phone_number: str) -> str:
    """Hide all but the last four digits of a phone number for log output."""
    if not phone_number or len(phone_number) <= 4:
        return "****"
    return "*" * (len(phone_number) - 4) + phone_number[-4:]
