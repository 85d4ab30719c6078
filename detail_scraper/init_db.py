#!/usr/bin/env python
"""
Database initialization script
Stamps an existing schema or runs migrations up to head
"""
import subprocess
import sys

from sqlalchemy import inspect

from detail_scraper.database import build_engine


def check_tables(engine):
    """Return (games table exists, alembic version table exists)"""
    try:
        tables = inspect(engine).get_table_names()
    except Exception as e:
        print(f"⚠️  Could not check database state: {str(e)}")
        return False, False
    return 'games' in tables, 'alembic_version' in tables


def run_alembic(*args):
    try:
        result = subprocess.run(
            ["alembic", *args],
            check=True,
            capture_output=True,
            text=True
        )
        print(result.stdout)
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ alembic {' '.join(args)} failed: {e.stderr}")
        return False


def main(engine=None):
    """Main initialization function"""
    engine = engine or build_engine()
    has_games, has_alembic = check_tables(engine)

    if has_games and not has_alembic:
        # Tables were created outside alembic (e.g. by the list scraper)
        print("📋 Tables exist but alembic not initialized, stamping database...")
        if not run_alembic("stamp", "001"):
            return 1

    print("🔄 Running database migrations...")
    if not run_alembic("upgrade", "head"):
        return 1
    print("✅ Migrations completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
