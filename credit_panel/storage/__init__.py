"""
Storage layer for Credit Panel.

Record store contract plus its SQLite and Supabase backends.
"""

from .repository import RecordStore, SQLiteStore, get_store

__all__ = ["RecordStore", "SQLiteStore", "get_store"]
