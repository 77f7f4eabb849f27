"""Skinminder - local reminder engine and routine extraction for a skincare companion app

Philosophy:
    Reminders should be predictable and easy to switch off. A user toggles a
    category once and the engine keeps exactly one upcoming reminder per
    enabled category, never more.

Components:
    notifications/: Preference storage, permission handshake, scheduling and delivery
    routines/: Extracting morning/evening/weekly steps from assistant replies

Database: data/skinminder.db
    - records: Whole-record key/value storage (preferences, permission answer)
    - scheduled_deliveries: Pending reminders handed to the delivery authority
    - delivery_log: Sent and fired reminders
"""

import os
import sqlite3
from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
DATA_DIR = Path(os.environ.get("SKINMINDER_DATA_DIR", PROJECT_ROOT / "data"))
DB_PATH = DATA_DIR / "skinminder.db"


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """
    Get database connection, creating tables if needed.

    Args:
        db_path: Database file (defaults to DB_PATH)

    Returns:
        SQLite connection with row_factory set
    """
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row

    cursor = conn.cursor()

    # Whole-record key/value storage
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS records (
            key TEXT PRIMARY KEY,
            value BLOB NOT NULL,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Reminders waiting to fire
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS scheduled_deliveries (
            id TEXT PRIMARY KEY,
            category TEXT NOT NULL,
            fire_at DATETIME NOT NULL,
            title TEXT NOT NULL,
            body TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Sent (immediate) and fired (scheduled) reminders
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS delivery_log (
            id TEXT PRIMARY KEY,
            category TEXT NOT NULL,
            title TEXT NOT NULL,
            body TEXT,
            status TEXT NOT NULL,
            sent_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_scheduled_category "
        "ON scheduled_deliveries(category)"
    )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_scheduled_fire_at "
        "ON scheduled_deliveries(fire_at)"
    )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_delivery_log_status "
        "ON delivery_log(status, sent_at)"
    )

    conn.commit()
    return conn


__version__ = "0.1.0"

__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "DATA_DIR",
    "DB_PATH",
    "get_connection",
]
