#!/usr/bin/env python3
"""
Database setup script for the task router.

Creates the ``kv_store`` table behind SupabaseKeyValueStore over a direct
PostgreSQL connection (DATABASE_URL). The Supabase REST API cannot run DDL,
so this is the one place psycopg2 is used.

Usage:
    python setup/setup_database.py           # Create table and indexes
    python setup/setup_database.py --verify  # Check table, indexes and row counts
    python setup/setup_database.py --drop    # Drop and recreate (DANGEROUS)
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import psycopg2

from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger()

TABLE_NAME = "kv_store"

# (description, statement) pairs, run in order inside one transaction.
# Prefix scans use LIKE 'prefix%', which needs text_pattern_ops.
SCHEMA_STATEMENTS = [
    (
        f"table '{TABLE_NAME}'",
        f"""
        CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
            key TEXT PRIMARY KEY,
            value JSONB NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        "index 'idx_kv_store_key_prefix'",
        f"CREATE INDEX IF NOT EXISTS idx_kv_store_key_prefix ON {TABLE_NAME}(key text_pattern_ops);",
    ),
    (
        "index 'idx_kv_store_updated_at'",
        f"CREATE INDEX IF NOT EXISTS idx_kv_store_updated_at ON {TABLE_NAME}(updated_at DESC);",
    ),
]

EXPECTED_INDEXES = ["idx_kv_store_key_prefix", "idx_kv_store_updated_at"]

# Record kinds reported by --verify
KEY_PREFIXES = [
    "app-configuration",
    "suggestions:",
    "activity:",
    "triage-activity:",
    "user_action:",
    "feedback:",
    "triage-analytics-counters",
]


def connect(config):
    """Open a PostgreSQL connection or exit with setup hints."""
    database_url = config.credentials.database_url
    if not database_url:
        logger.error("DATABASE_URL is not set")
        logger.error("Find it in the Supabase Dashboard under Project Settings → Database → Connection string (URI),")
        logger.error("then add DATABASE_URL=postgresql://... to your .env file")
        sys.exit(1)

    try:
        conn = psycopg2.connect(database_url)
    except psycopg2.Error as e:
        logger.error(f"✗ Could not connect to PostgreSQL: {e}")
        sys.exit(1)

    logger.info("✓ Connected to PostgreSQL")
    return conn


def create_schema(conn) -> bool:
    """Create the table and indexes; rolls back everything if one statement fails."""
    logger.info(f"Creating schema for '{TABLE_NAME}'...")
    try:
        with conn.cursor() as cursor:
            for description, statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)
                logger.info(f"✓ Created {description}")
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"✗ Schema creation failed, rolled back: {e}")
        return False

    logger.info("✓ Schema ready")
    return True


def verify_schema(conn) -> bool:
    """Report the table, its indexes and how many records of each kind are stored."""
    with conn.cursor() as cursor:
        cursor.execute("SELECT to_regclass(%s);", (TABLE_NAME,))
        if cursor.fetchone()[0] is None:
            logger.error(f"✗ Table '{TABLE_NAME}' does not exist")
            return False
        logger.info(f"✓ Table '{TABLE_NAME}' exists")

        cursor.execute("SELECT indexname FROM pg_indexes WHERE tablename = %s;", (TABLE_NAME,))
        present = {row[0] for row in cursor.fetchall()}
        missing = [name for name in EXPECTED_INDEXES if name not in present]
        for name in EXPECTED_INDEXES:
            if name in present:
                logger.info(f"✓ Index '{name}' exists")
        for name in missing:
            logger.warning(f"⚠ Index '{name}' missing (run without --verify to create it)")

        for prefix in KEY_PREFIXES:
            cursor.execute(f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE key LIKE %s;", (f"{prefix}%",))
            logger.info(f"  {prefix:<28} {cursor.fetchone()[0]} rows")

    return True


def drop_schema(conn) -> bool:
    """Drop the table after an interactive confirmation."""
    logger.warning(f"This deletes '{TABLE_NAME}': the routing configuration and all activity history.")
    if input("Type 'yes' to confirm: ").strip().lower() != "yes":
        logger.info("Aborted.")
        return False

    try:
        with conn.cursor() as cursor:
            cursor.execute(f"DROP TABLE IF EXISTS {TABLE_NAME} CASCADE;")
        conn.commit()
    except psycopg2.Error as e:
        conn.rollback()
        logger.error(f"✗ Drop failed: {e}")
        return False

    logger.info(f"✓ Dropped table '{TABLE_NAME}'")
    return True


def main():
    parser = argparse.ArgumentParser(description="Create the key-value table for the AI task router")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--verify", action="store_true", help="Only check the existing schema")
    group.add_argument("--drop", action="store_true", help="Drop and recreate the table (deletes all data)")
    args = parser.parse_args()

    conn = connect(load_config())
    try:
        if args.verify:
            ok = verify_schema(conn)
        else:
            ok = (not args.drop or drop_schema(conn)) and create_schema(conn)
    finally:
        conn.close()

    if not ok:
        sys.exit(1)
    if not args.verify:
        logger.info("Next: python setup/setup_database.py --verify")


if __name__ == "__main__":
    main()
