# SPDX-License-Identifier: GPL-3.0-only
"""API client identities: issuance, activation and authentication."""

import secrets
import uuid

from base_logger import get_logger
from src.db_models import ApiClient
from src.errors import AuthorizationError, NotFoundError
from src.utils import get_configs

logger = get_logger(__name__)

API_KEY_PREFIX = "otp_"
SYSTEM_API_KEY_PREFIX = "otp_system_"
PLATFORM_NAME = get_configs("PLATFORM_NAME", default_value="Yalavoch Platform")


def generate_api_key(prefix=API_KEY_PREFIX):
    """Generate a new API key: the prefix followed by 64 hex characters."""
    return prefix + secrets.token_hex(32)


def create_client(name, webhook_url=None, is_system=False):
    """
    Issue a new API client.

    Args:
        name (str): Display name, used as the default service name.
        webhook_url (str, optional): Callback URL registered by the client.
        is_system (bool): Whether this is the platform's own client.

    Returns:
        ApiClient: The created client. Its ``api_key`` is only shown once.
    """
    if not name or not name.strip():
        raise ValueError("Client name is required.")

    client = ApiClient.create(
        name=name.strip(),
        api_key=generate_api_key(SYSTEM_API_KEY_PREFIX if is_system else API_KEY_PREFIX),
        webhook_url=webhook_url,
        is_system=is_system,
    )
    logger.info("API client '%s' created", client.name)
    return client


def set_client_active(client_id, is_active):
    """Activate or deactivate a client.

    Raises:
        NotFoundError: If no client has this id.
    """
    try:
        client_id = uuid.UUID(str(client_id))
    except ValueError as e:
        raise NotFoundError("API client not found.") from e

    rows_updated = (
        ApiClient.update(is_active=is_active).where(ApiClient.id == client_id).execute()
    )
    if not rows_updated:
        raise NotFoundError("API client not found.")

    logger.info("API client %s %s", client_id, "activated" if is_active else "deactivated")
    return ApiClient.get_by_id(client_id)


def authenticate_client(api_key):
    """
    Resolve an API key to an active client.

    Raises:
        AuthorizationError: If the key is missing, unknown or inactive.
    """
    if not api_key:
        raise AuthorizationError("Missing API key. Include 'X-API-Key' header.")

    client = ApiClient.get_or_none(ApiClient.api_key == api_key)
    if not client or not client.is_active:
        logger.warning("Rejected request with invalid or inactive API key")
        raise AuthorizationError()

    return client


def ensure_system_client(name=None):
    """
    Return the platform's own client, creating it on first start.

    Called once while wiring the service; the result is handed to the
    components that run the platform's account flows.
    """
    client = (
        ApiClient.select()
        .where(ApiClient.is_system == True)  # noqa: E712
        .order_by(ApiClient.date_created)
        .first()
    )
    if client:
        return client

    logger.info("Creating system API client")
    return create_client(name or PLATFORM_NAME, is_system=True)
