# SPDX-License-Identifier: GPL-3.0-only
"""Request throttling for verification requests.

Both limits are computed from the stored requests themselves, so every
process behind the load balancer sees the same history. Creating a request
is what records it; there is no separate counter to keep in sync.
"""

import datetime
import math

from base_logger import get_logger, mask_phone_number
from src.db_models import VerificationRequest
from src.errors import RateLimitError, ThrottledError
from src.utils import get_int_config

logger = get_logger(__name__)

RESEND_INTERVAL_SECONDS = 60
HOURLY_REQUEST_LIMIT = get_int_config("OTP_HOURLY_REQUEST_LIMIT", 100)


def check_resend_throttle(phone_number, client):
    """
    Enforce the minimum gap between two requests of the same pair.

    Args:
        phone_number (str): Normalized E.164 phone number.
        client (ApiClient): Requesting party.

    Raises:
        ThrottledError: With the whole seconds left, never less than 1.
    """
    latest = (
        VerificationRequest.select(VerificationRequest.date_created)
        .where(
            VerificationRequest.phone_number == phone_number,
            VerificationRequest.client == client,
        )
        .order_by(VerificationRequest.date_created.desc())
        .first()
    )

    if not latest:
        return

    elapsed = (datetime.datetime.now() - latest.date_created).total_seconds()
    if elapsed >= RESEND_INTERVAL_SECONDS:
        return

    retry_after = max(1, math.ceil(RESEND_INTERVAL_SECONDS - elapsed))
    logger.info(
        "Resend for %s throttled, retry after %ds",
        mask_phone_number(phone_number),
        retry_after,
    )
    raise ThrottledError(retry_after)


def check_hourly_limit(phone_number, client):
    """
    Cap the requests a client may create for one phone number per hour.

    Raises:
        RateLimitError: Once HOURLY_REQUEST_LIMIT requests exist in the
            trailing hour.
    """
    window_start = datetime.datetime.now() - datetime.timedelta(hours=1)
    recent_requests = (
        VerificationRequest.select()
        .where(
            VerificationRequest.phone_number == phone_number,
            VerificationRequest.client == client,
            VerificationRequest.date_created >= window_start,
        )
        .count()
    )

    if recent_requests >= HOURLY_REQUEST_LIMIT:
        logger.warning(
            "Hourly limit reached for %s (%d requests)",
            mask_phone_number(phone_number),
            recent_requests,
        )
        raise RateLimitError(
            f"Rate limit exceeded. Max {HOURLY_REQUEST_LIMIT} requests per phone per hour."
        )
