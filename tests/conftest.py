"""Shared fixtures for the test suite."""

import datetime

import pytest
from peewee import SqliteDatabase

from src.utils import set_configs

set_configs("MODE", "testing")


@pytest.fixture(autouse=True)
def setup_teardown_database(tmp_path):
    """Setup and teardown test database."""
    from src.db_models import MODELS
    from src.utils import create_tables

    db_path = tmp_path / "test.db"
    test_db = SqliteDatabase(db_path, pragmas={"foreign_keys": 1})
    test_db.bind(MODELS)
    test_db.connect()
    create_tables(MODELS)

    yield

    test_db.drop_tables(MODELS)
    test_db.close()


@pytest.fixture()
def client():
    """An active third-party API client."""
    from src.api_clients import create_client

    return create_client("Acme Shop")


@pytest.fixture()
def other_client():
    """A second, unrelated API client."""
    from src.api_clients import create_client

    return create_client("Other App")


@pytest.fixture()
def system_client():
    """The platform's own client."""
    from src.api_clients import ensure_system_client

    return ensure_system_client()


class FakeSender:
    """Records delivered codes and answers with a configurable outcome."""

    def __init__(self, success=True, error=None):
        self.success = success
        self.error = error
        self.sent = []

    def __call__(self, chat_id, otp_code, service_name, expires_in_minutes):
        self.sent.append(
            {
                "chat_id": chat_id,
                "otp_code": otp_code,
                "service_name": service_name,
                "expires_in_minutes": expires_in_minutes,
            }
        )
        return self.success, self.error


@pytest.fixture()
def sender():
    """A delivery function that always succeeds."""
    return FakeSender()


@pytest.fixture()
def coordinator(system_client, sender):
    """Delivery coordinator wired with the fake sender."""
    from src.delivery import DeliveryCoordinator

    return DeliveryCoordinator(
        system_client, send_code=sender, bot_link="https://t.me/TestOtpBot"
    )


@pytest.fixture()
def shift():
    """Move a stored request's timestamps into the past."""
    from src.db_models import VerificationRequest

    def _shift(request, **delta):
        offset = datetime.timedelta(**delta)
        stored = VerificationRequest.get_by_id(request.id)
        VerificationRequest.update(
            date_created=stored.date_created - offset,
            date_expires=stored.date_expires - offset,
        ).where(VerificationRequest.id == request.id).execute()
        return VerificationRequest.get_by_id(request.id)

    return _shift


@pytest.fixture()
def failing_sender():
    """A delivery function that always fails."""
    return FakeSender(success=False, error="Forbidden: bot was blocked by the user")
