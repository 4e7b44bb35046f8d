# SPDX-License-Identifier: GPL-3.0-only
"""Verification request store.

Owns every state transition of a verification request:

    pending -> code_sent -> verified
    pending | code_sent -> expired      (lazily, when an overdue request is read)
    code_sent -> incorrect              (after too many wrong codes)

Transitions are conditional updates checked through their affected-row
count, so concurrent callers racing on the same request fail closed.
"""

import datetime
import hmac
import uuid

from peewee import IntegrityError, fn

from base_logger import get_logger, mask_phone_number
from src.db_models import VerificationRequest
from src.errors import ExpiredError, InvalidCodeError, NotFoundError, ValidationError
from src.otp_codes import generate_otp_code
from src.types import VerificationStatus
from src.utils import get_int_config, validate_query_args

logger = get_logger(__name__)

OTP_EXPIRY_MINUTES = 5
MAX_OTP_VERIFY_ATTEMPTS = get_int_config("OTP_MAX_VERIFY_ATTEMPTS", 5)
CREATE_RETRIES = 3
ACTIVATION_CANDIDATES = 3

PENDING = VerificationStatus.PENDING.value
CODE_SENT = VerificationStatus.CODE_SENT.value
VERIFIED = VerificationStatus.VERIFIED.value
EXPIRED = VerificationStatus.EXPIRED.value
INCORRECT = VerificationStatus.INCORRECT.value
ACTIVE_STATUSES = [status.value for status in VerificationStatus.active()]
TERMINAL_STATUSES = [status.value for status in VerificationStatus.terminal()]


def _database():
    return VerificationRequest._meta.database


def make_active_key(phone_number, client):
    """Key shared by all active requests of one phone number and client."""
    return f"{phone_number}:{client.id}"


def _parse_request_id(request_id):
    if isinstance(request_id, uuid.UUID):
        return request_id
    try:
        return uuid.UUID(str(request_id))
    except (TypeError, ValueError):
        return None


def _expire_overdue(*conditions):
    """Expire every overdue active request matching ``conditions``."""
    now = datetime.datetime.now()
    return (
        VerificationRequest.update(status=EXPIRED, active_key=None)
        .where(
            VerificationRequest.status.in_(ACTIVE_STATUSES),
            VerificationRequest.date_expires < now,
            *conditions,
        )
        .execute()
    )


def _supersede_active(phone_number, client):
    return (
        VerificationRequest.update(status=EXPIRED, active_key=None)
        .where(
            VerificationRequest.phone_number == phone_number,
            VerificationRequest.client == client,
            VerificationRequest.status.in_(ACTIVE_STATUSES),
        )
        .execute()
    )


def create(phone_number, client, service_name=None, chat_link=None):
    """
    Create a verification request, superseding active ones for the pair.

    Prior active requests of the same phone number and client are expired
    (never deleted) in the same transaction that inserts the new one. When
    another creator commits first, the unique ``active_key`` rejects this
    insert and the whole step is retried.

    Args:
        phone_number (str): Normalized E.164 phone number.
        client (ApiClient): Requesting party.
        service_name (str, optional): Label shown alongside the code.
        chat_link (ChatLink, optional): When given, a code is generated and
            the request starts in ``code_sent``.

    Returns:
        VerificationRequest: The new active request.
    """
    active_key = make_active_key(phone_number, client)
    last_error = None

    for attempt in range(1, CREATE_RETRIES + 1):
        now = datetime.datetime.now()
        otp_code = generate_otp_code() if chat_link else None

        try:
            with _database().atomic():
                superseded = _supersede_active(phone_number, client)
                request = VerificationRequest.create(
                    phone_number=phone_number,
                    client=client,
                    service_name=service_name,
                    otp_code=otp_code,
                    status=CODE_SENT if otp_code else PENDING,
                    active_key=active_key,
                    date_created=now,
                    date_expires=now + datetime.timedelta(minutes=OTP_EXPIRY_MINUTES),
                )
        except IntegrityError as e:
            last_error = e
            logger.warning(
                "Concurrent request creation for %s (attempt %d/%d)",
                mask_phone_number(phone_number),
                attempt,
                CREATE_RETRIES,
            )
            continue

        if superseded:
            logger.info("Superseded %d active request(s)", superseded)
        logger.info(
            "Verification request created for %s with status %s",
            mask_phone_number(phone_number),
            request.status,
        )
        return request

    logger.error("Could not create verification request after %d attempts", CREATE_RETRIES)
    raise last_error


def expire_request(request):
    """
    Move an active request to ``expired``.

    Safe to call repeatedly or concurrently; the stored status is re-read
    when another caller got there first.

    Returns:
        VerificationRequest: The request with its current status.
    """
    rows_updated = (
        VerificationRequest.update(status=EXPIRED, active_key=None)
        .where(
            VerificationRequest.id == request.id,
            VerificationRequest.status.in_(ACTIVE_STATUSES),
        )
        .execute()
    )

    if rows_updated:
        logger.info("Verification request expired")
        request.status = EXPIRED
        request.active_key = None
        return request

    return VerificationRequest.get_by_id(request.id)


def revert_to_pending(request):
    """Withdraw an undelivered code so the request waits for a chat link."""
    rows_updated = (
        VerificationRequest.update(status=PENDING, otp_code=None)
        .where(
            VerificationRequest.id == request.id,
            VerificationRequest.status == CODE_SENT,
        )
        .execute()
    )

    if rows_updated:
        logger.info("Verification request reverted to pending")
        request.status = PENDING
        request.otp_code = None
        return request

    logger.warning("Revert skipped, request is no longer code_sent")
    return VerificationRequest.get_by_id(request.id)


def activate_from_chat_link(phone_number):
    """
    Generate a code for the newest pending request of a phone number.

    The lookup spans every client, because the user sharing a contact with
    the bot cannot tell which service asked for the verification.

    Args:
        phone_number (str): Normalized E.164 phone number.

    Returns:
        VerificationRequest | None: The request now in ``code_sent`` with a
        fresh code, or None when nothing is waiting.
    """
    _expire_overdue(VerificationRequest.phone_number == phone_number)

    now = datetime.datetime.now()
    candidates = (
        VerificationRequest.select()
        .where(
            VerificationRequest.phone_number == phone_number,
            VerificationRequest.status == PENDING,
            VerificationRequest.date_expires >= now,
        )
        .order_by(VerificationRequest.date_created.desc(), VerificationRequest.id)
        .limit(ACTIVATION_CANDIDATES)
    )

    for request in candidates:
        otp_code = generate_otp_code()
        rows_updated = (
            VerificationRequest.update(otp_code=otp_code, status=CODE_SENT)
            .where(
                VerificationRequest.id == request.id,
                VerificationRequest.status == PENDING,
                VerificationRequest.date_expires >= now,
            )
            .execute()
        )
        if rows_updated:
            request.otp_code = otp_code
            request.status = CODE_SENT
            logger.info(
                "Pending request activated for %s", mask_phone_number(phone_number)
            )
            return request

    logger.info("No pending request for %s", mask_phone_number(phone_number))
    return None


def _register_failed_attempt(request):
    (
        VerificationRequest.update(attempt_count=VerificationRequest.attempt_count + 1)
        .where(
            VerificationRequest.id == request.id,
            VerificationRequest.status == CODE_SENT,
        )
        .execute()
    )
    request = VerificationRequest.get_by_id(request.id)

    if request.attempt_count < MAX_OTP_VERIFY_ATTEMPTS:
        return False

    rows_updated = (
        VerificationRequest.update(status=INCORRECT, active_key=None)
        .where(
            VerificationRequest.id == request.id,
            VerificationRequest.status == CODE_SENT,
        )
        .execute()
    )
    if rows_updated:
        logger.info("Verification request invalidated after %d attempts", request.attempt_count)
    return True


def verify(code, client, request_id=None, phone_number=None):
    """
    Verify a submitted code against the matching ``code_sent`` request.

    Args:
        code (str): The code as submitted, compared exactly.
        client (ApiClient): Requesting party; requests of other clients
            never match.
        request_id (str | UUID, optional): Identifier of the request.
        phone_number (str, optional): Normalized phone number, used when no
            request id is given.

    Returns:
        VerificationRequest: The request, now ``verified``.

    Raises:
        ValidationError: If neither identifier is provided.
        InvalidCodeError: If no active request matches or the code differs.
        ExpiredError: If the matching request is overdue.
    """
    if not code or not isinstance(code, str):
        raise ValidationError("Code is required.")

    query = VerificationRequest.select().where(
        VerificationRequest.client == client,
        VerificationRequest.status == CODE_SENT,
    )

    if request_id is not None:
        parsed_id = _parse_request_id(request_id)
        if parsed_id is None:
            raise InvalidCodeError()
        query = query.where(VerificationRequest.id == parsed_id)
    elif phone_number:
        query = query.where(VerificationRequest.phone_number == phone_number)
    else:
        raise ValidationError("Either phoneNumber or requestId is required.")

    request = query.order_by(VerificationRequest.date_created.desc()).first()

    if not request or request.otp_code is None:
        logger.info("No active request matches the submitted code")
        raise InvalidCodeError()

    now = datetime.datetime.now()
    if request.is_expired(now):
        expire_request(request)
        raise ExpiredError()

    if not hmac.compare_digest(request.otp_code.encode(), code.encode()):
        if _register_failed_attempt(request):
            raise InvalidCodeError(
                "Too many incorrect attempts. Request a new verification code."
            )
        raise InvalidCodeError()

    rows_updated = (
        VerificationRequest.update(status=VERIFIED, date_verified=now, active_key=None)
        .where(
            VerificationRequest.id == request.id,
            VerificationRequest.status == CODE_SENT,
            VerificationRequest.otp_code == code,
        )
        .execute()
    )

    if not rows_updated:
        logger.warning("Request changed while verifying, rejecting code")
        raise InvalidCodeError()

    request.status = VERIFIED
    request.date_verified = now
    request.active_key = None
    logger.info("Phone number %s verified", mask_phone_number(request.phone_number))
    return request


def get_status(request_id, client):
    """
    Read a request owned by ``client``, expiring it first when overdue.

    Raises:
        NotFoundError: If the id is unknown or belongs to another client.
    """
    parsed_id = _parse_request_id(request_id)
    request = None
    if parsed_id is not None:
        request = VerificationRequest.get_or_none(
            VerificationRequest.id == parsed_id,
            VerificationRequest.client == client,
        )

    if not request:
        raise NotFoundError()

    if request.is_active() and request.is_expired():
        request = expire_request(request)

    return request


def latest_request(phone_number, client):
    """Return the most recent request for a phone number and client, or None."""
    _expire_overdue(
        VerificationRequest.phone_number == phone_number,
        VerificationRequest.client == client,
    )
    return (
        VerificationRequest.select()
        .where(
            VerificationRequest.phone_number == phone_number,
            VerificationRequest.client == client,
        )
        .order_by(VerificationRequest.date_created.desc(), VerificationRequest.id)
        .first()
    )


def query_requests(
    clients,
    phone_number=None,
    service_name=None,
    status=None,
    start_date=None,
    end_date=None,
    page=None,
    limit=None,
):
    """
    List requests of the given clients, newest first.

    Args:
        clients (list): ApiClient instances whose requests are visible.
        phone_number (str, optional): Substring filter on the phone number.
        service_name (str, optional): Substring filter on the service name.
        status (str, optional): Exact status filter.
        start_date (str, optional): Inclusive "YYYY-MM-DD" lower bound.
        end_date (str, optional): Inclusive "YYYY-MM-DD" upper bound.
        page (int, optional): Page number, defaults to 1.
        limit (int, optional): Page size, defaults to 20 and is capped at 100.

    Returns:
        tuple: (list of VerificationRequest, total matching count).

    Raises:
        ValidationError: If a filter or pagination argument is malformed.
    """
    try:
        args = validate_query_args(start_date, end_date, page, limit)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    if status is not None and status not in ACTIVE_STATUSES + TERMINAL_STATUSES:
        raise ValidationError(f"Unknown status '{status}'.")

    if not clients:
        return [], 0

    _expire_overdue(VerificationRequest.client.in_(clients))

    conditions = [VerificationRequest.client.in_(clients)]
    if phone_number:
        conditions.append(VerificationRequest.phone_number.contains(phone_number))
    if service_name:
        conditions.append(VerificationRequest.service_name.contains(service_name))
    if status:
        conditions.append(VerificationRequest.status == status)
    if args["start"]:
        conditions.append(VerificationRequest.date_created >= args["start"])
    if args["end"]:
        conditions.append(VerificationRequest.date_created <= args["end"])

    query = VerificationRequest.select().where(*conditions)
    total = query.count()
    items = list(
        query.order_by(
            VerificationRequest.date_created.desc(), VerificationRequest.id
        ).paginate(args["page"], args["limit"])
    )
    return items, total


def count_by_status(clients):
    """Count requests of the given clients per status, plus a ``total``."""
    counts = {status: 0 for status in ACTIVE_STATUSES + TERMINAL_STATUSES}
    counts["total"] = 0

    if not clients:
        return counts

    _expire_overdue(VerificationRequest.client.in_(clients))

    rows = (
        VerificationRequest.select(
            VerificationRequest.status, fn.COUNT(VerificationRequest.id).alias("count")
        )
        .where(VerificationRequest.client.in_(clients))
        .group_by(VerificationRequest.status)
        .tuples()
    )
    for status, count in rows:
        counts[status] = count
        counts["total"] += count

    return counts


def find_purgeable_ids(older_than_days):
    """Ids of terminal requests created more than ``older_than_days`` ago."""
    cutoff = datetime.datetime.now() - datetime.timedelta(days=older_than_days)
    return [
        request.id
        for request in VerificationRequest.select(VerificationRequest.id).where(
            VerificationRequest.status.in_(TERMINAL_STATUSES),
            VerificationRequest.date_created < cutoff,
        )
    ]


def delete_requests(request_ids):
    """Delete terminal requests by id. Active requests are never removed."""
    with _database().atomic():
        return (
            VerificationRequest.delete()
            .where(
                VerificationRequest.id.in_(list(request_ids)),
                VerificationRequest.status.in_(TERMINAL_STATUSES),
            )
            .execute()
        )
