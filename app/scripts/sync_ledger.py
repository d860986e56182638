"""
Backfill the ledger for payment plan money that has no payment record: down payments
and installment paid amounts written outside the payment path.

Idempotent: rows already synced are found by idempotency key or installment link and skipped.
Usage: python -m app.scripts.sync_ledger [--school-id N]
"""

import argparse
import asyncio
import sys
from typing import Optional

from app.api.v1.payment_plans.service import reconcile_plan_payments
from app.core.exceptions import ServiceError
from app.core.logging import setup_logging
from app.db.session import AsyncSessionLocal


async def sync_ledger(school_id: Optional[int] = None) -> int:
    async with AsyncSessionLocal() as session:
        scope = f"school {school_id}" if school_id is not None else "all schools"
        print(f"Starting ledger sync for {scope}...")
        try:
            result = await reconcile_plan_payments(session, school_id=school_id)
        except ServiceError as e:
            print(f"Ledger sync failed: {e.message}", file=sys.stderr)
            return 1
        print(f"Done. Synced {result.synced} payment(s), skipped {result.skipped} already recorded.")
        return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill payment plan ledger entries")
    parser.add_argument("--school-id", type=int, default=None, help="Limit the sync to one school")
    args = parser.parse_args()
    setup_logging()
    sys.exit(asyncio.run(sync_ledger(args.school_id)))


if __name__ == "__main__":
    main()
