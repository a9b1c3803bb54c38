"""
Repository pattern for data access.

Defines the record store contract the panel components read through,
and the local SQLite implementation of it.
"""

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional, Set

from credit_panel.core.errors import StoreError
from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    Coupon,
    GenerationRecord,
    GenerationStatus,
    RANKED_STATUSES,
    coupon_from_row,
)

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """External record store the panel reads from.

    Implementations raise StoreError when the backend fails; they never
    return partial results silently.
    """

    @abstractmethod
    def find_active_coupon(self, code: str) -> Optional[Coupon]:
        """Active coupon with exactly this (already normalized) code, if any."""

    @abstractmethod
    def list_banned_user_ids(self) -> Set[str]:
        """IDs of banned users."""

    @abstractmethod
    def list_admin_user_ids(self) -> Set[str]:
        """IDs of users holding the admin role."""

    @abstractmethod
    def list_negative_balance_user_ids(self) -> Set[str]:
        """IDs of users whose wallet balance is below zero."""

    @abstractmethod
    def fetch_generations(self, offset: int, limit: int) -> List[GenerationRecord]:
        """One page of ranked generations.

        Only rows with a user, credits_earned > 0 and a status in
        RANKED_STATUSES are returned, in a stable order.
        """

    @abstractmethod
    def list_user_emails(self, per_page: int = 1000) -> Dict[str, str]:
        """Map of user ID to email for the first `per_page` identities."""

    @abstractmethod
    def increment_coupon_usage(self, coupon_id: str) -> bool:
        """Atomically record one use of a coupon.

        Returns:
            True if the use was recorded, False if the coupon is exhausted
            or unknown
        """

    @abstractmethod
    def insert_coupon(self, coupon: Coupon) -> None:
        """Store a new coupon."""

    @abstractmethod
    def insert_generation(self, record: GenerationRecord) -> None:
        """Append a generation record."""


class SQLiteStore(RecordStore):
    """Record store backed by a local SQLite file."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def _query(self, sql: str, params=()) -> List[sqlite3.Row]:
        conn = get_connection(self.db_path)
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("SQLite read failed: %s", e)
            raise StoreError(f"Store read failed: {e}") from e
        finally:
            conn.close()

    def _write(self, sql: str, params=()) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("SQLite write failed: %s", e)
            raise StoreError(f"Store write failed: {e}") from e
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create the panel tables if they don't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS coupons (
                    id TEXT PRIMARY KEY,
                    code TEXT NOT NULL UNIQUE,
                    discount_type TEXT NOT NULL,
                    discount_value TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    expires_at TEXT,
                    max_uses INTEGER,
                    times_used INTEGER NOT NULL DEFAULT 0
                );
                CREATE TABLE IF NOT EXISTS generations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT,
                    credits_earned REAL NOT NULL DEFAULT 0,
                    status TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS banned_users (
                    user_id TEXT PRIMARY KEY
                );
                CREATE TABLE IF NOT EXISTS user_roles (
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    PRIMARY KEY (user_id, role)
                );
                CREATE TABLE IF NOT EXISTS wallets (
                    user_id TEXT PRIMARY KEY,
                    balance REAL NOT NULL DEFAULT 0
                );
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def find_active_coupon(self, code: str) -> Optional[Coupon]:
        rows = self._query(
            "SELECT * FROM coupons WHERE code = ? AND is_active = 1 LIMIT 1",
            (code,)
        )
        if not rows:
            return None
        row = dict(rows[0])
        row["is_active"] = bool(row["is_active"])
        return coupon_from_row(row)

    def list_banned_user_ids(self) -> Set[str]:
        return {row["user_id"] for row in self._query("SELECT user_id FROM banned_users")}

    def list_admin_user_ids(self) -> Set[str]:
        rows = self._query("SELECT user_id FROM user_roles WHERE role = 'admin'")
        return {row["user_id"] for row in rows}

    def list_negative_balance_user_ids(self) -> Set[str]:
        rows = self._query("SELECT user_id FROM wallets WHERE balance < 0")
        return {row["user_id"] for row in rows}

    def fetch_generations(self, offset: int, limit: int) -> List[GenerationRecord]:
        statuses = [status.value for status in RANKED_STATUSES]
        placeholders = ", ".join("?" for _ in statuses)
        rows = self._query(
            f"""
                SELECT user_id, credits_earned, status
                FROM generations
                WHERE user_id IS NOT NULL
                  AND credits_earned > 0
                  AND status IN ({placeholders})
                ORDER BY id
                LIMIT ? OFFSET ?
            """,
            (*statuses, limit, offset)
        )
        return [
            GenerationRecord(
                user_id=row["user_id"],
                credits_earned=Decimal(str(row["credits_earned"])),
                status=GenerationStatus(row["status"])
            )
            for row in rows
        ]

    def list_user_emails(self, per_page: int = 1000) -> Dict[str, str]:
        rows = self._query("SELECT id, email FROM users ORDER BY id LIMIT ?", (per_page,))
        return {row["id"]: row["email"] or "" for row in rows}

    def increment_coupon_usage(self, coupon_id: str) -> bool:
        # Single conditional UPDATE so concurrent redemptions cannot pass max_uses
        updated = self._write(
            """
                UPDATE coupons SET times_used = times_used + 1
                WHERE id = ? AND (max_uses IS NULL OR times_used < max_uses)
            """,
            (coupon_id,)
        )
        return updated == 1

    def insert_coupon(self, coupon: Coupon) -> None:
        self._write(
            """
                INSERT INTO coupons
                (id, code, discount_type, discount_value, is_active,
                 expires_at, max_uses, times_used)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                coupon.id or str(uuid.uuid4()),
                coupon.code,
                coupon.discount_type.value,
                str(coupon.discount_value),
                int(coupon.is_active),
                coupon.expires_at.isoformat() if coupon.expires_at else None,
                coupon.max_uses,
                coupon.times_used
            )
        )

    def insert_generation(self, record: GenerationRecord) -> None:
        self._write(
            "INSERT INTO generations (user_id, credits_earned, status) VALUES (?, ?, ?)",
            (record.user_id, float(record.credits_earned), record.status.value)
        )

    def ban_user(self, user_id: str) -> None:
        self._write("INSERT OR IGNORE INTO banned_users (user_id) VALUES (?)", (user_id,))

    def set_user_role(self, user_id: str, role: str) -> None:
        self._write(
            "INSERT OR IGNORE INTO user_roles (user_id, role) VALUES (?, ?)",
            (user_id, role)
        )

    def set_wallet_balance(self, user_id: str, balance: Decimal) -> None:
        self._write(
            """
                INSERT INTO wallets (user_id, balance) VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET balance = excluded.balance
            """,
            (user_id, float(balance))
        )

    def insert_user(self, user_id: str, email: str) -> None:
        self._write(
            """
                INSERT INTO users (id, email) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET email = excluded.email
            """,
            (user_id, email)
        )


def get_store(settings=None) -> RecordStore:
    """Get the record store configured by the environment.

    Uses Supabase when both the URL and the service-role key are set,
    otherwise a local SQLite file.

    Args:
        settings: Settings object; defaults to the environment settings

    Returns:
        A RecordStore instance
    """
    if settings is None:
        from credit_panel.config.settings import get_settings
        settings = get_settings()

    if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
        from .supabase_store import SupabaseStore
        return SupabaseStore.from_credentials(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY
        )
    return SQLiteStore(settings.DB_PATH)
