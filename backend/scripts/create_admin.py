#!/usr/bin/env python3
"""
Seed an admin account, or promote an existing user to ADMIN.

Public registration only offers MENTEE and MENTOR, so this is the one way an
admin comes to exist. The account is ACTIVE straight away; sign in through the
normal email code login.

Usage:
    DDB_TABLE_NAME=... python backend/scripts/create_admin.py admin@example.org [--first-name A] [--last-name B]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from urocareerz.observability.logging import configure_logging, email_domain, get_logger  # noqa: E402
from urocareerz.repositories import users_repo  # noqa: E402
from urocareerz.services.email_ses import is_valid_email  # noqa: E402

log = get_logger("create_admin")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote a UroCareerz admin")
    parser.add_argument("email")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args(argv)

    configure_logging(level="INFO")
    email = users_repo.normalize_email(args.email)
    if not is_valid_email(email):
        parser.error(f"not a valid email address: {args.email!r}")

    user, created = users_repo.provision_admin(
        email=email, first_name=args.first_name, last_name=args.last_name
    )
    log.info(
        "admin_created" if created else "admin_promoted",
        user_id=user.get("id"),
        email_domain=email_domain(email),
    )
    print(f"{'Created' if created else 'Promoted'} admin {user.get('id')} ({email})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
