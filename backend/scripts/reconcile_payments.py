"""CLI script to settle RFID orders that were collected but never charged.

Usage: python scripts/reconcile_payments.py [--dry-run]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `campuseats` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from campuseats.database import engine, create_db_and_tables
from campuseats import repositories, services


def main(dry_run: bool = False):
    """Find PICKED_UP/COMPLETED RFID orders still PENDING and settle them.

    Uses the same idempotent settlement as the status endpoints.
    """
    create_db_and_tables()
    with Session(engine) as session:
        if dry_run:
            pending = repositories.OrderRepository(session).list_unsettled_rfid()
            print(f'Found {len(pending)} orders to settle')
            for order in pending:
                print(f'  {order.order_number}: student {order.student_id}, amount {order.total_amount:.2f}')
            return
        results = services.OrderService(session).reconcile_unsettled()
        print(f'Found {len(results)} orders to settle')
        for r in results:
            if r['settled']:
                print(f"  {r['order_number']}: charged {r['amount']:.2f}, new balance {r['new_balance']:.2f}")
            else:
                print(f"  {r['order_number']}: skipped ({r.get('error', 'already paid')})")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--dry-run', action='store_true', help='List affected orders without charging them')
    args = parser.parse_args()
    main(dry_run=args.dry_run)
