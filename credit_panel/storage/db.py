"""
Database connection management.

Provides the SQLite connection used by the local record store.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "credit_panel.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.
    
    Rows are returned as sqlite3.Row so columns can be read by name.
    
    Args:
        db_path: Path to SQLite database file
        
    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
