#!/usr/bin/env python3
"""
Create the documents table and load the starter product catalog.

Usage:
    python scripts/seed_catalog.py            # create table, insert products
    python scripts/seed_catalog.py --dry-run  # list what would be inserted

Requires:
    - .env file with Snowflake credentials (or STORE_MOCK_MODE=true)
"""

import argparse
import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from poolcare.api.dependencies import snowflake_config
from poolcare.config.settings import get_settings
from poolcare.core.pools.models import Product
from poolcare.core.scheduling.sync import RecordSynchronizer
from poolcare.core.validation import RecordValidationError
from poolcare.infrastructure.snowflake.client import (
    SnowflakeConnectionError,
    create_snowflake_connection,
)
from poolcare.infrastructure.snowflake.repositories.documents import StoreError
from poolcare.infrastructure.snowflake.repositories.records import RecordRepository


STARTER_CATALOG = [
    Product(name="Chlorine Tabs", cost=89.90, stock=40,
            description="Slow-dissolving trichlor tablets for floaters and feeders"),
    Product(name="Liquid Shock", cost=24.50, stock=25,
            description="Sodium hypochlorite shock for weekly or post-storm treatment"),
    Product(name="Algaecide", cost=38.00, stock=12,
            description="Copper-free algaecide, safe for vinyl liners"),
    Product(name="pH Up", cost=19.90, stock=8,
            description="Sodium carbonate to raise pH"),
    Product(name="pH Down", cost=21.90, stock=8,
            description="Sodium bisulfate to lower pH"),
    Product(name="Alkalinity Increaser", cost=27.00, stock=6,
            description="Sodium bicarbonate to raise total alkalinity"),
    Product(name="Clarifier", cost=32.00, stock=0,
            description="Coagulant for cloudy water"),
    Product(name="Pool Salt", cost=45.00, stock=15,
            description="Pure salt for chlorine generators"),
]


def seed(dry_run: bool) -> int:
    settings = get_settings()

    if dry_run:
        print("\n=== DRY RUN - No data will be inserted ===\n")
        for product in STARTER_CATALOG:
            print(f"Would insert: {product.name} ({product.stock} in stock)")
        print(f"\nTotal: {len(STARTER_CATALOG)} products")
        return 0

    config = None if settings.store_mock_mode else snowflake_config(settings)
    if config is not None and (not config.account or not config.user):
        print("ERROR: Missing SNOWFLAKE_ACCOUNT or SNOWFLAKE_USER")
        return 1

    inserted = 0
    errors = 0

    try:
        with create_snowflake_connection(config, mock_mode=settings.store_mock_mode) as conn:
            repository = RecordRepository(conn)
            repository.create_schema()
            print("Documents table ready")

            existing = {p.name.lower() for p in repository.list_products()}
            # Products are shared, so the synchronizer's user id is irrelevant here
            synchronizer = RecordSynchronizer(repository, user_id="seed")

            for product in STARTER_CATALOG:
                if product.name.lower() in existing:
                    print(f"[SKIP] Already in catalog: {product.name}")
                    continue
                try:
                    synchronizer.save_product(product)
                    inserted += 1
                    print(f"[OK] Inserted: {product.name}")
                except (RecordValidationError, StoreError) as e:
                    errors += 1
                    print(f"[ERR] Error inserting {product.name}: {e}")

    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        return 1

    print("\n=== Seed Complete ===")
    print(f"Inserted: {inserted}")
    print(f"Errors: {errors}")
    return 0 if errors == 0 else 1


def main():
    parser = argparse.ArgumentParser(description='Seed the PoolCare product catalog')
    parser.add_argument('--dry-run', action='store_true', help='List products, don\'t insert')
    args = parser.parse_args()

    sys.exit(seed(args.dry_run))


if __name__ == '__main__':
    main()
