"""Test module for account verification codes."""

import pytest

PHONE = "+12015550123"


def test_account_service_name():
    """Test account codes are labelled with the platform name."""
    from src.account_otp import account_service_name
    from src.types import AccountOTPPurpose

    assert account_service_name(AccountOTPPurpose.REGISTRATION) == "Yalavoch Registration"
    assert (
        account_service_name(AccountOTPPurpose.PASSWORD_RESET)
        == "Yalavoch Password Reset"
    )


def test_request_and_confirm(coordinator, system_client, sender):
    """Test an account code can be requested, delivered and confirmed."""
    from src.account_otp import (
        confirm_account_code,
        latest_account_request,
        request_account_code,
    )
    from src.types import AccountOTPPurpose

    started = request_account_code(coordinator, PHONE, AccountOTPPurpose.REGISTRATION)
    assert started.delivered_proactively is False
    assert started.request.client_id == system_client.id

    coordinator.handle_chat_linked(PHONE, 1001)
    assert sender.sent[0]["service_name"] == "Yalavoch Registration"

    verified = confirm_account_code(coordinator, "1 201 555 0123", sender.sent[0]["otp_code"])
    assert verified.status == "verified"
    assert latest_account_request(coordinator, PHONE).id == started.request_id


def test_account_codes_are_isolated_from_clients(coordinator, client, sender):
    """Test a third-party request does not satisfy an account check."""
    from src.account_otp import confirm_account_code
    from src.chat_links import upsert_link
    from src.errors import InvalidCodeError

    upsert_link(PHONE, 1001)
    coordinator.start_verification(PHONE, client=client)

    with pytest.raises(InvalidCodeError):
        confirm_account_code(coordinator, PHONE, sender.sent[0]["otp_code"])


def test_account_resend_is_throttled(coordinator):
    """Test the resend cooldown applies to account codes."""
    from src.account_otp import request_account_code
    from src.errors import ThrottledError
    from src.types import AccountOTPPurpose

    request_account_code(coordinator, PHONE, AccountOTPPurpose.PASSWORD_RESET)

    with pytest.raises(ThrottledError):
        request_account_code(
            coordinator, PHONE, AccountOTPPurpose.PASSWORD_RESET, resend=True
        )
