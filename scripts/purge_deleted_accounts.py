#!/usr/bin/env python3
"""Permanently remove accounts that were soft-deleted long ago.

Deleted accounts stay in the database so their owners can reclaim them by
registering again. This script purges the ones deleted more than N days ago.

Usage:
    # From project root:
    python scripts/purge_deleted_accounts.py --days 90

    # Preview without deleting:
    python scripts/purge_deleted_accounts.py --days 90 --dry-run
"""

import argparse
import logging
import os
import sys
from datetime import UTC, datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from armory.database import session_scope
from armory.services.account_repository import AccountRepository
from armory.services.account_service import AccountService
from armory.services.email_service import EmailService
from armory.services.session_cache import SessionCache

logger = logging.getLogger("purge_deleted_accounts")


def purge_deleted_accounts(days: int, dry_run: bool = False) -> int:
    with session_scope() as db:
        if dry_run:
            cutoff = datetime.now(UTC) - timedelta(days=days)
            accounts = AccountRepository(db).list_deleted_before(cutoff)
            for account in accounts:
                logger.info(f"Would purge account {account.id} (deleted {account.deleted_at})")
            return len(accounts)

        service = AccountService(db, EmailService(), SessionCache())
        return service.purge_deleted_before(days)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--days", type=int, default=90, help="Minimum days since deletion")
    parser.add_argument("--dry-run", action="store_true", help="List accounts without deleting")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    count = purge_deleted_accounts(args.days, args.dry_run)
    print(f"{'Would purge' if args.dry_run else 'Purged'} {count} account(s)")
