"""
Create the core StreamTrack tables.

Creates tables:
- titles: Tracked movies and shows
- services: Streaming providers (seeded with the default set)
- availability_logs: One row per title/service/check

Migration: 2025_01_create_core_tables
"""
import logging
import sqlite3

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    ("Netflix", "nfx"),
    ("Amazon Prime Video", "amp"),
    ("Hulu", "hlu"),
    ("Disney+", "dnp"),
    ("HBO Max", "hbm"),
    ("Apple TV+", "atp"),
    ("Peacock", "pck"),
    ("Paramount+", "pmp"),
]


def migrate(db_path):
    """Create titles, services and availability_logs tables"""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='titles'")
        if cursor.fetchone():
            logger.info("Core tables already exist, skipping")
            return True, "Tables already exist"

        cursor.execute(
            """
            CREATE TABLE titles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name VARCHAR(255) NOT NULL,
                type VARCHAR(10) NOT NULL CHECK (type IN ('movie', 'tv')),
                external_id VARCHAR(100),
                justwatch_id VARCHAR(50),
                poster_url VARCHAR(500),
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS services (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name VARCHAR(100) NOT NULL UNIQUE,
                slug VARCHAR(20) NOT NULL UNIQUE,
                logo_url VARCHAR(500)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS availability_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title_id INTEGER NOT NULL,
                service_id INTEGER NOT NULL,
                check_date DATE NOT NULL,
                is_available BOOLEAN NOT NULL,
                FOREIGN KEY (title_id) REFERENCES titles (id),
                FOREIGN KEY (service_id) REFERENCES services (id)
            )
        """
        )

        cursor.execute("CREATE INDEX IF NOT EXISTS ix_availability_logs_title_id ON availability_logs (title_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS ix_availability_logs_service_id ON availability_logs (service_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS ix_availability_logs_check_date ON availability_logs (check_date)")

        cursor.executemany("INSERT OR IGNORE INTO services (name, slug) VALUES (?, ?)", DEFAULT_SERVICES)

        conn.commit()
        logger.info("Created core tables")
        return True, "Created titles, services and availability_logs tables"

    except Exception as e:
        conn.rollback()
        logger.error(f"Error creating core tables: {e}")
        return False, str(e)

    finally:
        conn.close()
