"""Create the inventory sync tables.

With --seed, also adds a small sample catalog and one agency profile so a
first sync against a test ERP has something to match against.
"""

import argparse
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import load_env_file, resolve_db_path
from partner_resolver.db import add_profile, list_agency_profiles
from product_resolver.db import add_product, list_active_products
from sync.schema import init_sync_database


SAMPLE_PRODUCTS = [
    ("Blue Banner", "Banners", ["Blue"], ["Large", "Small"]),
    ("Red Banner", "Banners", ["Red"], ["Large"]),
    ("Roll-up Stand", "Displays", [], ["85x200"]),
    ("Flyer A5", "Print", [], []),
]

SAMPLE_PROFILES = [
    ("agency-user-1", "Acme Agency", "agency-1"),
]


def seed(db_path: Path) -> None:
    if not list_active_products(db_path):
        for name, category, colors, sizes in SAMPLE_PRODUCTS:
            product = add_product(name, category, colors, sizes, db_path=db_path)
            print(f"  + product {product.id}: {product.name} ({product.category})")
    else:
        print("  catalog already has products, skipping")

    if not list_agency_profiles(db_path):
        for user_id, name, agency_id in SAMPLE_PROFILES:
            add_profile(user_id, name, agency_id, db_path=db_path)
            print(f"  + profile {user_id}: {name} (agency {agency_id})")
    else:
        print("  agency profiles already exist, skipping")


def main():
    parser = argparse.ArgumentParser(description="Create the inventory sync database")
    parser.add_argument("--db", type=str, default=None, help="Database path (default: INVENTORY_DB_PATH)")
    parser.add_argument("--seed", action="store_true", help="Add a sample catalog and agency profile")
    args = parser.parse_args()

    load_env_file()
    db_path = Path(args.db) if args.db else resolve_db_path()

    init_sync_database(db_path)
    print(f"Initialized {db_path}")

    if args.seed:
        seed(db_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
