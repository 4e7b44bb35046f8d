# SPDX-License-Identifier: GPL-3.0-only
"""Peewee Database ORM Models."""

import datetime
import uuid

from peewee import (
    BigIntegerField,
    BooleanField,
    CharField,
    DateTimeField,
    ForeignKeyField,
    IntegerField,
    Model,
    UUIDField,
)

from src.db import connect
from src.types import VerificationStatus

database = connect()


class BaseModel(Model):
    """Base model bound to the service database."""

    class Meta:
        database = database


class ApiClient(BaseModel):
    """A third-party application (or the platform itself) requesting codes."""

    id = UUIDField(primary_key=True, default=uuid.uuid4)
    name = CharField()
    api_key = CharField(unique=True)
    webhook_url = CharField(null=True)
    is_active = BooleanField(default=True)
    is_system = BooleanField(default=False)
    date_created = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "api_clients"


class ChatLink(BaseModel):
    """Association between a phone number and a Telegram chat."""

    phone_number = CharField(unique=True)
    chat_id = BigIntegerField()
    first_name = CharField(null=True)
    last_name = CharField(null=True)
    username = CharField(null=True)
    date_created = DateTimeField(default=datetime.datetime.now)
    date_updated = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "chat_links"


class VerificationRequest(BaseModel):
    """A phone verification request and its delivery state.

    ``active_key`` holds "<phone>:<client id>" while the request is pending
    or code_sent and is NULL otherwise. Its unique index keeps a single
    active request per phone number and client.
    """

    id = UUIDField(primary_key=True, default=uuid.uuid4)
    phone_number = CharField(index=True)
    client = ForeignKeyField(
        ApiClient, backref="verification_requests", on_delete="CASCADE"
    )
    service_name = CharField(null=True)
    otp_code = CharField(max_length=6, null=True)
    status = CharField(default=VerificationStatus.PENDING.value, index=True)
    attempt_count = IntegerField(default=0)
    active_key = CharField(null=True, unique=True)
    date_created = DateTimeField(default=datetime.datetime.now, index=True)
    date_expires = DateTimeField()
    date_verified = DateTimeField(null=True)

    class Meta:
        table_name = "verification_requests"
        indexes = ((("phone_number", "client", "date_created"), False),)

    def is_expired(self, now=None):
        """Check whether the validity window has passed."""
        return (now or datetime.datetime.now()) > self.date_expires

    def is_active(self):
        """Check whether the request can still progress."""
        return self.status in [s.value for s in VerificationStatus.active()]

    @property
    def display_service_name(self):
        """Service label shown to the user, defaulting to the client name."""
        return self.service_name or self.client.name


MODELS = [ApiClient, ChatLink, VerificationRequest]
