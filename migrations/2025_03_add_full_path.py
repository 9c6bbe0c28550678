"""Add full_path column to titles table

Stores the canonical JustWatch path (e.g. /us/movie/inception) so checks can
look a title up exactly instead of searching by name. Existing rows stay
NULL until backfilled (flask backfill-paths).

Migration: 2025_03_add_full_path
"""

import sqlite3


def get_description():
    return "Add full_path column to titles table"


def migrate(db_path):
    """
    Add full_path column to titles table.

    Args:
        db_path: Path to the SQLite database

    Returns:
        tuple: (success: bool, message: str)
    """
    try:
        conn = sqlite3.connect(db_path)
        cursor = conn.cursor()

        cursor.execute("PRAGMA table_info(titles)")
        columns = [row[1] for row in cursor.fetchall()]

        if "full_path" in columns:
            conn.close()
            return (True, "full_path column already exists, skipping")

        cursor.execute("ALTER TABLE titles ADD COLUMN full_path VARCHAR(255)")

        conn.commit()
        conn.close()

        return (True, "Added full_path column to titles table")

    except Exception as e:
        return (False, f"Failed to add full_path column: {e}")
