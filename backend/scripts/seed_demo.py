"""CLI script to load demo students, vendors, menus and an admin.

Usage: python scripts/seed_demo.py [--reset]
"""
import sys
import argparse
import pathlib
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from campuseats.database import engine, create_db_and_tables, drop_db_and_tables
from campuseats.seed import seed_demo_data


def main(reset: bool = False):
    if reset:
        drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        created = seed_demo_data(session)
    print(f"Seeded {created['users']} users, {created['vendors']} vendors, {created['menu_items']} menu items")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--reset', action='store_true', help='Drop all tables before seeding')
    args = parser.parse_args()
    main(reset=args.reset)
