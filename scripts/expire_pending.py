#!/usr/bin/env python3
"""
One-shot sweep of abandoned checkouts.

Moves 'pending' payments older than the TTL to 'cancelled'. The API process
runs the same sweep on a schedule when PENDING_EXPIRY_ENABLED is set.

Usage: python -m scripts.expire_pending [--ttl-minutes N] [--dry-run]
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone

from crud.payment import expire_stale_pending
from db.session import SessionLocal
from config.settings import settings
from models.payment import Payment

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
logger = logging.getLogger("expire_pending")

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Cancel abandoned pending payments")
    parser.add_argument("--ttl-minutes", type=int, default=settings.PENDING_TTL_MINUTES)
    parser.add_argument("--dry-run", action="store_true", help="only count matching payments")
    args = parser.parse_args(argv)

    cutoff = datetime.now(timezone.utc) - timedelta(minutes=args.ttl_minutes)
    with SessionLocal() as db:
        if args.dry_run:
            count = (
                db.query(Payment)
                .filter(Payment.status == "pending", Payment.created_at < cutoff)
                .count()
            )
            logger.info("%d pending payment(s) older than %s would be cancelled", count, cutoff.isoformat())
            return 0
        cancelled = expire_stale_pending(db, cutoff)
    logger.info("Cancelled %d pending payment(s) older than %s", cancelled, cutoff.isoformat())
    return 0

if __name__ == "__main__":
    sys.exit(main())
