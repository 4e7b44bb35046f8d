# SPDX-License-Identifier: GPL-3.0-only
"""Expected, recoverable failures of the verification lifecycle.

Every error carries the HTTP-style status code a boundary should answer
with and a message that is safe to show to the caller.
"""


class OTPError(Exception):
    """Base class for verification lifecycle errors."""

    status_code = 400
    default_message = "Verification request failed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(OTPError):
    """Malformed input such as an invalid phone number or a missing field."""

    default_message = "Invalid request."


class AuthorizationError(OTPError):
    """Unknown or inactive client identity."""

    status_code = 401
    default_message = "Invalid or inactive API key."


class NotFoundError(OTPError):
    """No request matches the given identifiers."""

    status_code = 404
    default_message = "Request not found."


class ExpiredError(OTPError):
    """The matched request's validity window has passed."""

    default_message = "OTP code has expired."


class InvalidCodeError(OTPError):
    """The submitted code does not match an active request."""

    default_message = "Invalid OTP code."


class ThrottledError(OTPError):
    """A resend was attempted before the cooldown elapsed."""

    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__(
            f"Please wait {retry_after} seconds before requesting a new code."
        )
        self.retry_after = retry_after


class RateLimitError(OTPError):
    """The per-client hourly request cap was reached."""

    status_code = 429
    default_message = "Rate limit exceeded. Too many requests for this phone number."


class DeliveryError(OTPError):
    """The messaging channel refused or failed to deliver a code."""

    status_code = 502
    default_message = "Failed to deliver the verification code."
