# SPDX-License-Identifier: GPL-3.0-only
"""Verification codes for the platform's own account flows.

Registration and password reset run the same lifecycle as third-party
requests, under the system client handed to the coordinator.
"""

from base_logger import get_logger
from src import verification_requests
from src.api_clients import PLATFORM_NAME
from src.phone_number import normalize_phone_number
from src.types import AccountOTPPurpose

logger = get_logger(__name__)

SERVICE_NAMES = {
    AccountOTPPurpose.REGISTRATION: "Registration",
    AccountOTPPurpose.PASSWORD_RESET: "Password Reset",
}


def account_service_name(purpose):
    """Service name shown with account codes, e.g. "Yalavoch Registration"."""
    platform = PLATFORM_NAME.replace(" Platform", "")
    return f"{platform} {SERVICE_NAMES[purpose]}"


def request_account_code(coordinator, phone_number, purpose, resend=False):
    """
    Start or resend an account verification.

    Args:
        coordinator (DeliveryCoordinator): Wired with the system client.
        phone_number (str): Raw phone number.
        purpose (AccountOTPPurpose): Why the code is needed.
        resend (bool): Apply the resend cooldown.

    Returns:
        VerificationStarted: Delivery outcome.
    """
    logger.debug("Requesting account code for %s", purpose.value)
    return coordinator.start_verification(
        phone_number,
        client=coordinator.system_client,
        service_name=account_service_name(purpose),
        resend=resend,
    )


def confirm_account_code(coordinator, phone_number, code):
    """
    Verify a code submitted in an account flow.

    Returns:
        VerificationRequest: The verified request.

    Raises:
        ValidationError, InvalidCodeError, ExpiredError: As for any request.
    """
    normalized_phone = normalize_phone_number(phone_number)
    return verification_requests.verify(
        code, coordinator.system_client, phone_number=normalized_phone
    )


def latest_account_request(coordinator, phone_number):
    """Most recent account request for a phone number, or None."""
    normalized_phone = normalize_phone_number(phone_number)
    return verification_requests.latest_request(
        normalized_phone, coordinator.system_client
    )
