#!/usr/bin/env python3
"""
Run all database migrations in order.

This script:
1. Discovers all migration files in the migrations/ directory
2. Runs them in alphabetical order (by filename)
3. Each migration is idempotent and can be run multiple times safely
4. Reports success/failure for each migration

Usage:
    python run_migrations.py

Environment Variables:
    DATABASE_URL: Path to database (default: sqlite:///data/streamtrack.db)
"""

import importlib.util
import os
import sys
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_database_path(database_url=None):
    """Get database path from a SQLite URL (DATABASE_URL by default)."""
    if database_url is None:
        database_url = os.getenv("DATABASE_URL", "sqlite:///data/streamtrack.db")

    if database_url.startswith("sqlite:///"):
        return database_url[len("sqlite:///"):]
    if database_url.startswith("sqlite://"):
        return database_url[len("sqlite://"):]
    return database_url


def discover_migrations(migrations_dir=MIGRATIONS_DIR):
    """Find all migration files in the migrations directory."""
    migrations_dir = Path(migrations_dir)
    if not migrations_dir.exists():
        return []

    return sorted(
        f for f in migrations_dir.glob("*.py") if f.name != "__init__.py" and not f.name.startswith(".")
    )


def load_migration(migration_file):
    """Load a migration module from file."""
    spec = importlib.util.spec_from_file_location(migration_file.stem, migration_file)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_migrations(db_path=None, migrations_dir=MIGRATIONS_DIR):
    """
    Run all migrations in order.

    Returns:
        dict with applied, skipped and failed counts
    """
    if db_path is None:
        db_path = get_database_path()

    print("=" * 60)
    print("StreamTrack - Database Migrations")
    print("=" * 60)
    print(f"Database: {db_path}")
    print()

    migrations = discover_migrations(migrations_dir)
    counts = {"applied": 0, "skipped": 0, "failed": 0}

    if not migrations:
        print("ℹ️  No migrations found")
        return counts

    print(f"Found {len(migrations)} migration(s)")
    print()

    for migration_file in migrations:
        print(f"Running migration: {migration_file.stem}")

        try:
            migration_module = load_migration(migration_file)

            if not hasattr(migration_module, "migrate"):
                print("  ⚠️  Skipping: No migrate() function found")
                counts["skipped"] += 1
                continue

            success, message = migration_module.migrate(db_path)

            if success:
                if "skipping" in message.lower() or "already" in message.lower():
                    print(f"  ⏭️  {message}")
                    counts["skipped"] += 1
                else:
                    print(f"  ✅ {message}")
                    counts["applied"] += 1
            else:
                print(f"  ❌ {message}")
                counts["failed"] += 1

        except Exception as e:
            print(f"  ❌ Error: {e}")
            counts["failed"] += 1

    print()
    print("=" * 60)
    print(f"Summary: {counts['applied']} applied, {counts['skipped']} skipped, {counts['failed']} failed")
    print("=" * 60)

    return counts


if __name__ == "__main__":
    db_dir = os.path.dirname(get_database_path())
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    result = run_migrations()
    sys.exit(0 if result["failed"] == 0 else 1)
