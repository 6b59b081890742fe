"""
Create (or deactivate) an organizer account in the `admins` table.

An identity is an admin only while an active `admins` row carries its auth id,
so this script is the way organizers are granted or denied dashboard access.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from confdesk.dependencies import get_auth_provider, get_record_store
from confdesk.errors import ConferenceError
from confdesk.validation import check_password, is_valid_email

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Manage conference organizer accounts")
    parser.add_argument("--email", required=True, help="Organizer e-mail address")
    parser.add_argument("--full-name", default="Organizer", help="Display name")
    parser.add_argument("--role", default="admin", help="Role label stored on the row")
    parser.add_argument(
        "--auth-id",
        default=None,
        help="Existing auth identity id; skips creating a new login",
    )
    parser.add_argument(
        "--deactivate",
        action="store_true",
        help="Mark the organizer inactive instead of creating one",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if not is_valid_email(args.email):
        logger.error("Invalid e-mail address: %s", args.email)
        return 2

    store = get_record_store()
    existing = store.select("admins", filters={"email": args.email}, limit=1)

    if args.deactivate:
        if not existing:
            logger.error("No organizer with e-mail %s", args.email)
            return 1
        store.update("admins", existing[0]["id"], {"is_active": False})
        logger.info("Deactivated organizer %s", args.email)
        return 0

    if existing:
        store.update("admins", existing[0]["id"], {"is_active": True, "role": args.role})
        logger.info("Organizer %s already exists; reactivated", args.email)
        return 0

    auth_id = args.auth_id
    if not auth_id:
        password = getpass.getpass("Password for the new organizer: ")
        try:
            check_password(password, getpass.getpass("Confirm password: "))
            auth_id = get_auth_provider().sign_up(args.email, password).id
        except ConferenceError as exc:
            logger.error("Could not create login: %s", exc.message)
            return 1

    row = store.insert(
        "admins",
        {
            "auth_id": auth_id,
            "full_name": args.full_name,
            "email": args.email,
            "role": args.role,
            "is_active": True,
        },
    )
    logger.info("Created organizer %s (%s)", args.email, row["id"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
