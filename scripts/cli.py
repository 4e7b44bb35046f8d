# SPDX-License-Identifier: GPL-3.0-only
"""Telegram OTP CLI"""

import argparse
import sys

from peewee import chunked
from tqdm import tqdm

from base_logger import get_logger
from src import verification_requests
from src.api_clients import create_client, ensure_system_client, set_client_active
from src.db_models import MODELS
from src.errors import NotFoundError
from src.utils import create_tables, get_int_config

logger = get_logger("otp.cli")

BATCH_SIZE = 500
PURGE_AFTER_DAYS = get_int_config("PURGE_AFTER_DAYS", 30)


def init_db():
    """Create the service's tables."""
    create_tables(MODELS)
    logger.info("Database ready")


def create(name, webhook_url=None):
    """Issue an API client and print its key."""
    try:
        client = create_client(name, webhook_url=webhook_url)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"Client ID: {client.id}")
    print(f"API key:   {client.api_key}")
    print("Store the API key now, it will not be shown again.")


def toggle(client_id, is_active):
    """Activate or deactivate an API client."""
    try:
        set_client_active(client_id, is_active)
    except NotFoundError as e:
        logger.error(e.message)
        sys.exit(1)


def purge(days):
    """Delete finished verification requests older than ``days`` days."""
    request_ids = verification_requests.find_purgeable_ids(days)
    if not request_ids:
        logger.info("No verification requests to purge.")
        return

    deleted_count = 0
    failed_batches = 0

    with tqdm(
        total=len(request_ids), desc="Purging verification requests", unit="requests"
    ) as pbar:
        for batch_ids in chunked(request_ids, BATCH_SIZE):
            try:
                deleted_count += verification_requests.delete_requests(batch_ids)
            except Exception as e:
                failed_batches += 1
                logger.error("Error purging batch: %s", e)
            pbar.update(len(batch_ids))

    logger.info("Purged %d verification request(s)", deleted_count)
    if failed_batches:
        logger.error("%d batch(es) failed", failed_batches)
        sys.exit(1)


def run_bot():
    """Start the Telegram bot."""
    from src.delivery import DeliveryCoordinator
    from src.telegram_bot import OTPBot

    create_tables(MODELS)
    coordinator = DeliveryCoordinator(ensure_system_client())
    try:
        OTPBot(coordinator).run()
    except KeyboardInterrupt:
        logger.info("Bot stopped")


def main():
    """Entry function"""

    parser = argparse.ArgumentParser(description="Telegram OTP CLI")
    subparsers = parser.add_subparsers(dest="command", description="Expected commands")

    subparsers.add_parser("init-db", help="Creates the database tables.")

    create_parser = subparsers.add_parser("create-client", help="Issues an API client.")
    create_parser.add_argument("-n", "--name", type=str, help="Client name.", required=True)
    create_parser.add_argument(
        "-w", "--webhook-url", type=str, help="Client webhook URL.", default=None
    )

    for command, help_text in [
        ("activate-client", "Activates an API client."),
        ("deactivate-client", "Deactivates an API client."),
    ]:
        toggle_parser = subparsers.add_parser(command, help=help_text)
        toggle_parser.add_argument("client_id", type=str, help="Client ID.")

    purge_parser = subparsers.add_parser(
        "purge", help="Deletes finished verification requests."
    )
    purge_parser.add_argument(
        "-d",
        "--days",
        type=int,
        default=PURGE_AFTER_DAYS,
        help="Only delete requests older than this many days.",
    )

    subparsers.add_parser("run-bot", help="Starts the Telegram bot.")

    args = parser.parse_args()

    if args.command == "init-db":
        init_db()
    elif args.command == "create-client":
        create(args.name, webhook_url=args.webhook_url)
    elif args.command == "activate-client":
        toggle(args.client_id, True)
    elif args.command == "deactivate-client":
        toggle(args.client_id, False)
    elif args.command == "purge":
        if args.days < 0:
            parser.error("--days must not be negative")
        purge(args.days)
    elif args.command == "run-bot":
        run_bot()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
