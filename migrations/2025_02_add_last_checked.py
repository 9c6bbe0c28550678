"""Add last_checked column to titles table

The availability scheduler derives its check queue from this column:
never-checked titles first, then oldest check first. The index keeps that
ordering cheap as the catalog grows.

Migration: 2025_02_add_last_checked
"""

import sqlite3


def get_description():
    return "Add last_checked column and index to titles table"


def migrate(db_path):
    """
    Add last_checked column to titles table.

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

        if "last_checked" in columns:
            conn.close()
            return (True, "last_checked column already exists, skipping")

        # NULL means never checked
        cursor.execute("ALTER TABLE titles ADD COLUMN last_checked DATETIME")
        cursor.execute("CREATE INDEX IF NOT EXISTS ix_titles_last_checked ON titles (last_checked)")

        conn.commit()
        conn.close()

        return (True, "Added last_checked column to titles table")

    except Exception as e:
        return (False, f"Failed to add last_checked column: {e}")
