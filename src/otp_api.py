# SPDX-License-Identifier: GPL-3.0-only
"""OTP API handlers.

Framework-neutral request handlers for the client-facing API. Each handler
takes the caller's API key and the decoded JSON payload and returns a
``(status_code, body)`` pair ready to be serialized by the hosting server.
"""

import traceback

from base_logger import get_logger
from src import account_otp, verification_requests
from src.api_clients import authenticate_client
from src.errors import OTPError, ThrottledError
from src.phone_number import normalize_phone_number
from src.schemas import (
    AccountOTPRequest,
    OTPStatusRequest,
    ResendOTPRequest,
    SendOTPRequest,
    VerifyOTPRequest,
)
from src.utils import MAX_PAGE_LIMIT

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _isoformat(value):
    return value.isoformat() if value else None


def serialize_request(request):
    """Public representation of a verification request."""
    return {
        "requestId": str(request.id),
        "phoneNumber": request.phone_number,
        "serviceName": request.display_service_name,
        "status": request.status,
        "createdAt": _isoformat(request.date_created),
        "expiresAt": _isoformat(request.date_expires),
        "verifiedAt": _isoformat(request.date_verified),
    }


class OTPServiceAPI:
    """OTP API handlers bound to a delivery coordinator."""

    def __init__(self, coordinator):
        self.coordinator = coordinator

    def handle_create_error_response(self, error, status_code, **kwargs):
        """Builds an error response and logs the underlying error."""
        user_msg = kwargs.get("user_msg")
        error_type = kwargs.get("error_type")
        extra = kwargs.get("extra") or {}

        if not user_msg:
            user_msg = str(error)

        if error_type == "UNKNOWN":
            traceback.print_exception(type(error), error, error.__traceback__)
        else:
            logger.error(str(error))

        return status_code, {"success": False, "error": user_msg, **extra}

    def handle_otp_error(self, error):
        """Maps an expected lifecycle error to its response."""
        extra = {}
        if isinstance(error, ThrottledError):
            extra["waitSeconds"] = error.retry_after
        return self.handle_create_error_response(
            error, error.status_code, user_msg=error.message, extra=extra
        )

    def handle_unexpected_error(self, error):
        """Reports anything else as an internal error, without retrying."""
        return self.handle_create_error_response(
            error, 500, user_msg=INTERNAL_ERROR_MESSAGE, error_type="UNKNOWN"
        )

    def started_response(self, started):
        """Response body for a started or resent verification."""
        body = {
            "success": True,
            "requestId": str(started.request_id),
            "phoneNumber": started.phone_number,
            "expiresAt": _isoformat(started.expires_at),
            "otpSent": started.delivered_proactively,
        }
        if started.delivered_proactively:
            body["message"] = (
                "OTP code sent directly to user's Telegram. No bot visit needed."
            )
        else:
            body["botLink"] = started.fallback_hint
            body["message"] = (
                "Direct user to open the Telegram bot and share their contact."
            )
        return body

    def send_otp(self, api_key, payload):
        """Start a verification for a phone number."""
        try:
            client = authenticate_client(api_key)
            request = SendOTPRequest.from_dict(payload)
            started = self.coordinator.start_verification(
                request.phone_number, client=client, service_name=request.service_name
            )
            return 200, self.started_response(started)
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)

    def resend_otp(self, api_key, payload):
        """Start a fresh verification once the resend cooldown has passed."""
        try:
            client = authenticate_client(api_key)
            request = ResendOTPRequest.from_dict(payload)
            started = self.coordinator.resend_verification(
                request.phone_number, client=client, service_name=request.service_name
            )
            return 200, self.started_response(started)
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)

    def verify_otp(self, api_key, payload):
        """Verify a submitted code."""
        try:
            client = authenticate_client(api_key)
            request = VerifyOTPRequest.from_dict(payload)
            phone_number = (
                normalize_phone_number(request.phone_number)
                if request.phone_number
                else None
            )
            verified = verification_requests.verify(
                request.code,
                client,
                request_id=request.request_id,
                phone_number=phone_number,
            )
            return 200, {
                "success": True,
                "requestId": str(verified.id),
                "phoneNumber": verified.phone_number,
                "verifiedAt": _isoformat(verified.date_verified),
                "message": "Phone number verified successfully",
            }
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)

    def otp_status(self, api_key, request_id):
        """Read the status of a request owned by the caller."""
        try:
            client = authenticate_client(api_key)
            request = OTPStatusRequest.from_dict({"requestId": request_id})
            otp_request = verification_requests.get_status(request.request_id, client)
            return 200, {"success": True, **serialize_request(otp_request)}
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)

    def list_otps(self, api_key, filters=None):
        """List the caller's requests with filters and pagination."""
        filters = filters or {}
        try:
            client = authenticate_client(api_key)
            page = filters.get("page") or 1
            limit = filters.get("limit") or 20
            items, total = verification_requests.query_requests(
                [client],
                phone_number=filters.get("phoneNumber"),
                service_name=filters.get("serviceName"),
                status=filters.get("status"),
                start_date=filters.get("startDate"),
                end_date=filters.get("endDate"),
                page=page,
                limit=limit,
            )
            limit = min(limit, MAX_PAGE_LIMIT)
            return 200, {
                "success": True,
                "otps": [serialize_request(item) for item in items],
                "pagination": {
                    "page": page,
                    "limit": limit,
                    "total": total,
                    "pages": -(-total // limit),
                },
            }
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)

    def account_otp(self, payload, resend=True):
        """Send or resend a code for registration or password reset."""
        try:
            request = AccountOTPRequest.from_dict(payload)
            started = account_otp.request_account_code(
                self.coordinator, request.phone_number, request.purpose, resend=resend
            )
            body = self.started_response(started)
            body["message"] = (
                "New OTP code sent to your Telegram"
                if started.delivered_proactively
                else "Open Telegram bot to receive OTP"
            )
            return 200, body
        except OTPError as e:
            return self.handle_otp_error(e)
        except Exception as e:
            return self.handle_unexpected_error(e)
