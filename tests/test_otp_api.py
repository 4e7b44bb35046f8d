"""Test module for the OTP API handlers."""

import pytest

PHONE = "+12015550123"


@pytest.fixture()
def api(coordinator):
    """API handlers bound to the test coordinator."""
    from src.otp_api import OTPServiceAPI

    return OTPServiceAPI(coordinator)


def test_send_otp_pending(api, client):
    """Test sending to an unlinked number returns the bot link."""
    status_code, body = api.send_otp(client.api_key, {"phoneNumber": "+1 201 555 0123"})

    assert status_code == 200
    assert body["success"] is True
    assert body["phoneNumber"] == PHONE
    assert body["otpSent"] is False
    assert body["botLink"] == "https://t.me/TestOtpBot"
    assert body["requestId"]
    assert body["expiresAt"]


def test_send_otp_proactive(api, client, sender):
    """Test sending to a linked number pushes the code."""
    from src.chat_links import upsert_link

    upsert_link(PHONE, 1001)

    status_code, body = api.send_otp(
        client.api_key, {"phoneNumber": PHONE, "serviceName": "Shop"}
    )

    assert status_code == 200
    assert body["otpSent"] is True
    assert "botLink" not in body
    assert sender.sent[0]["service_name"] == "Shop"


@pytest.mark.parametrize("api_key", [None, "", "otp_unknown"])
def test_send_otp_unauthorized(api, api_key):
    """Test missing and unknown API keys are rejected."""
    status_code, body = api.send_otp(api_key, {"phoneNumber": PHONE})

    assert status_code == 401
    assert body["success"] is False
    assert body["error"]


def test_send_otp_inactive_client(api, client):
    """Test a deactivated client is rejected."""
    from src.api_clients import set_client_active

    set_client_active(client.id, False)

    status_code, body = api.send_otp(client.api_key, {"phoneNumber": PHONE})

    assert status_code == 401
    assert body["error"] == "Invalid or inactive API key."


@pytest.mark.parametrize(
    "payload", [{}, {"phoneNumber": ""}, {"phoneNumber": "12345"}, ["+12015550123"]]
)
def test_send_otp_invalid_payload(api, client, payload):
    """Test malformed payloads are rejected before anything is stored."""
    from src.db_models import VerificationRequest

    status_code, body = api.send_otp(client.api_key, payload)

    assert status_code == 400
    assert body["success"] is False
    assert VerificationRequest.select().count() == 0


def test_send_otp_service_name_too_long(api, client):
    """Test service names longer than the column are rejected."""
    from src.db_models import VerificationRequest
    from src.schemas import SERVICE_NAME_MAX_LENGTH

    status_code, body = api.send_otp(
        client.api_key,
        {"phoneNumber": PHONE, "serviceName": "x" * (SERVICE_NAME_MAX_LENGTH + 1)},
    )

    assert status_code == 400
    assert "at most 255 characters" in body["error"]
    assert VerificationRequest.select().count() == 0

    status_code, _ = api.send_otp(
        client.api_key,
        {"phoneNumber": PHONE, "serviceName": "x" * SERVICE_NAME_MAX_LENGTH},
    )
    assert status_code == 200


def test_resend_otp_throttled(api, client):
    """Test an early resend reports how long to wait."""
    api.send_otp(client.api_key, {"phoneNumber": PHONE})

    status_code, body = api.resend_otp(client.api_key, {"phoneNumber": PHONE})

    assert status_code == 429
    assert 1 <= body["waitSeconds"] <= 60
    assert "Please wait" in body["error"]


def test_verify_otp(api, client, coordinator, sender):
    """Test the full flow through the bot link and verification."""
    _, started = api.send_otp(client.api_key, {"phoneNumber": PHONE})
    coordinator.handle_chat_linked(PHONE, 1001)
    code = sender.sent[0]["otp_code"]

    status_code, body = api.verify_otp(
        client.api_key, {"requestId": started["requestId"], "code": code}
    )

    assert status_code == 200
    assert body["success"] is True
    assert body["phoneNumber"] == PHONE
    assert body["verifiedAt"]

    status_code, body = api.verify_otp(
        client.api_key, {"phoneNumber": PHONE, "code": code}
    )
    assert status_code == 400
    assert body["error"] == "Invalid OTP code."


def test_verify_otp_by_phone_number(api, client, coordinator, sender):
    """Test verifying with a formatted phone number."""
    api.send_otp(client.api_key, {"phoneNumber": PHONE})
    coordinator.handle_chat_linked(PHONE, 1001)

    status_code, body = api.verify_otp(
        client.api_key,
        {"phoneNumber": "+1 (201) 555-0123", "code": sender.sent[0]["otp_code"]},
    )

    assert status_code == 200
    assert body["success"] is True


@pytest.mark.parametrize(
    "payload",
    [{"code": "123456"}, {"requestId": "abc"}, {"code": "123456", "requestId": "abc"}],
)
def test_verify_otp_invalid_payload(api, client, payload):
    """Test verification payloads missing an identifier or code."""
    status_code, body = api.verify_otp(client.api_key, payload)

    assert status_code == 400
    assert body["success"] is False


def test_verify_otp_expired(api, client, coordinator, sender, shift):
    """Test an expired code is reported as such."""
    from src.db_models import VerificationRequest

    _, started = api.send_otp(client.api_key, {"phoneNumber": PHONE})
    coordinator.handle_chat_linked(PHONE, 1001)
    shift(VerificationRequest.get_by_id(started["requestId"]), minutes=6)

    status_code, body = api.verify_otp(
        client.api_key,
        {"requestId": started["requestId"], "code": sender.sent[0]["otp_code"]},
    )

    assert status_code == 400
    assert body["error"] == "OTP code has expired."


def test_otp_status(api, client, other_client):
    """Test status reads and cross-client isolation."""
    _, started = api.send_otp(client.api_key, {"phoneNumber": PHONE})

    status_code, body = api.otp_status(client.api_key, started["requestId"])
    assert status_code == 200
    assert body["status"] == "pending"
    assert body["serviceName"] == client.name
    assert body["verifiedAt"] is None

    status_code, body = api.otp_status(other_client.api_key, started["requestId"])
    assert status_code == 404
    assert body["error"] == "Request not found."

    status_code, _ = api.otp_status(client.api_key, "not-a-uuid")
    assert status_code == 400


def test_list_otps(api, client, other_client):
    """Test listing is scoped to the caller and paginated."""
    api.send_otp(client.api_key, {"phoneNumber": PHONE, "serviceName": "Shop"})
    api.send_otp(client.api_key, {"phoneNumber": "+447400123456"})
    api.send_otp(other_client.api_key, {"phoneNumber": PHONE})

    status_code, body = api.list_otps(client.api_key, {"limit": 1})

    assert status_code == 200
    assert len(body["otps"]) == 1
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    status_code, body = api.list_otps(client.api_key, {"serviceName": "Shop"})
    assert body["pagination"]["total"] == 1
    assert body["otps"][0]["phoneNumber"] == PHONE

    status_code, body = api.list_otps(client.api_key, {"status": "bogus"})
    assert status_code == 400


def test_account_otp(api, system_client):
    """Test account codes run under the system client."""
    from src.db_models import VerificationRequest

    status_code, body = api.account_otp(
        {"phoneNumber": PHONE, "type": "registration"}, resend=False
    )

    assert status_code == 200
    assert body["message"] == "Open Telegram bot to receive OTP"
    request = VerificationRequest.get_by_id(body["requestId"])
    assert request.client_id == system_client.id
    assert request.service_name.endswith("Registration")

    status_code, body = api.account_otp({"phoneNumber": PHONE, "type": "login"})
    assert status_code == 400


def test_unexpected_error(api, client, monkeypatch):
    """Test unexpected failures are reported as internal errors."""

    def broken(*args, **kwargs):
        raise RuntimeError("database is down")

    monkeypatch.setattr(api.coordinator, "start_verification", broken)

    status_code, body = api.send_otp(client.api_key, {"phoneNumber": PHONE})

    assert status_code == 500
    assert body == {"success": False, "error": "Internal server error"}
