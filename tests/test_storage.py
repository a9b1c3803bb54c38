"""
Unit tests for storage layer.

Tests schema creation, coupon lookup, the atomic usage increment and
generation log pagination against a temporary SQLite database.
"""

import os
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from credit_panel.config.settings import Settings
from credit_panel.core.errors import StoreError
from credit_panel.core.ranking import build_ranking
from credit_panel.demo.seed_demo_data import seed_demo_data
from credit_panel.storage.db import get_connection
from credit_panel.storage.models import (
    Coupon,
    DiscountType,
    GenerationRecord,
    GenerationStatus,
    parse_timestamp,
)
from credit_panel.storage.repository import SQLiteStore, get_store


@pytest.fixture
def store():
    """Create a store over a fresh temporary database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        sqlite_store = SQLiteStore(os.path.join(temp_dir, "test.db"))
        sqlite_store.initialize_schema()
        yield sqlite_store


def make_coupon(**overrides) -> Coupon:
    fields = dict(
        id="c-1",
        code="WELCOME10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
    )
    fields.update(overrides)
    return Coupon(**fields)


class TestStorageSchema:
    """Test database schema creation."""

    def test_schema_creation(self, store):
        """Verify all panel tables are created."""
        conn = get_connection(store.db_path)
        try:
            cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row[0] for row in cursor.fetchall()}
        finally:
            conn.close()

        assert {"coupons", "generations", "banned_users", "user_roles", "wallets", "users"} <= tables

    def test_schema_is_idempotent(self, store):
        store.initialize_schema()

    def test_missing_schema_raises_store_error(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            empty = SQLiteStore(os.path.join(temp_dir, "empty.db"))
            with pytest.raises(StoreError):
                empty.list_banned_user_ids()


class TestCoupons:
    """Test coupon persistence and lookup."""

    def test_insert_and_find(self, store):
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
        store.insert_coupon(make_coupon(expires_at=expires, max_uses=5, times_used=2))

        coupon = store.find_active_coupon("WELCOME10")

        assert coupon is not None
        assert coupon.id == "c-1"
        assert coupon.discount_type == DiscountType.PERCENTAGE
        assert coupon.discount_value == Decimal("10")
        assert coupon.expires_at == expires
        assert coupon.max_uses == 5
        assert coupon.times_used == 2

    def test_lookup_is_exact_match(self, store):
        """Verify the store does not normalize codes itself."""
        store.insert_coupon(make_coupon())
        assert store.find_active_coupon("welcome10") is None

    def test_inactive_coupon_not_found(self, store):
        store.insert_coupon(make_coupon(is_active=False))
        assert store.find_active_coupon("WELCOME10") is None

    def test_increment_until_exhausted(self, store):
        """Verify the conditional increment stops at max_uses."""
        store.insert_coupon(make_coupon(max_uses=2))

        assert store.increment_coupon_usage("c-1") is True
        assert store.increment_coupon_usage("c-1") is True
        assert store.increment_coupon_usage("c-1") is False
        assert store.find_active_coupon("WELCOME10").times_used == 2

    def test_increment_unlimited(self, store):
        store.insert_coupon(make_coupon(max_uses=None))
        for _ in range(3):
            assert store.increment_coupon_usage("c-1") is True
        assert store.find_active_coupon("WELCOME10").times_used == 3

    def test_increment_unknown_coupon(self, store):
        assert store.increment_coupon_usage("missing") is False


class TestGenerations:
    """Test the generation log reads."""

    def test_filters_unranked_rows(self, store):
        """Verify failed, zero-credit and anonymous rows are not returned."""
        store.insert_generation(GenerationRecord("u1", Decimal("10"), GenerationStatus.COMPLETED))
        store.insert_generation(GenerationRecord("u1", Decimal("20"), GenerationStatus.RUNNING))
        store.insert_generation(GenerationRecord("u1", Decimal("30"), GenerationStatus.FAILED))
        store.insert_generation(GenerationRecord("u1", Decimal("0"), GenerationStatus.COMPLETED))
        store.insert_generation(GenerationRecord(None, Decimal("40"), GenerationStatus.COMPLETED))

        records = store.fetch_generations(0, 100)

        assert [r.credits_earned for r in records] == [Decimal("10"), Decimal("20")]
        assert records[1].status == GenerationStatus.RUNNING

    def test_pages_in_insertion_order(self, store):
        for credits in range(1, 6):
            store.insert_generation(GenerationRecord("u1", Decimal(credits)))

        first = store.fetch_generations(0, 2)
        last = store.fetch_generations(4, 2)

        assert [r.credits_earned for r in first] == [Decimal("1"), Decimal("2")]
        assert [r.credits_earned for r in last] == [Decimal("5")]
        assert store.fetch_generations(10, 2) == []


class TestExclusionsAndIdentities:
    """Test exclusion lists and identity listing."""

    def test_exclusion_lists(self, store):
        store.ban_user("b1")
        store.set_user_role("a1", "admin")
        store.set_user_role("m1", "moderator")
        store.set_wallet_balance("n1", Decimal("-1.50"))
        store.set_wallet_balance("p1", Decimal("10"))

        assert store.list_banned_user_ids() == {"b1"}
        assert store.list_admin_user_ids() == {"a1"}
        assert store.list_negative_balance_user_ids() == {"n1"}

    def test_wallet_balance_upsert(self, store):
        store.set_wallet_balance("n1", Decimal("-5"))
        store.set_wallet_balance("n1", Decimal("5"))
        assert store.list_negative_balance_user_ids() == set()

    def test_user_emails_capped_by_page(self, store):
        for i in range(5):
            store.insert_user(f"u{i}", f"user{i}@example.com")

        emails = store.list_user_emails(per_page=3)

        assert len(emails) == 3
        assert emails["u0"] == "user0@example.com"


class TestSeededRanking:
    """Test the ranking end to end over the demo dataset."""

    def test_demo_ranking(self, store):
        seed_demo_data(store)

        ranking = build_ranking(store)

        assert [(e.position, e.masked_name, e.credits) for e in ranking] == [
            (1, "Anaso...", Decimal("750")),
            (2, "Bruno...", Decimal("420")),
            (3, "Carla...", Decimal("50")),
        ]


class TestGetStore:
    """Test store selection from settings."""

    def test_sqlite_without_supabase(self):
        store = get_store(Settings(DB_PATH="/tmp/panel.db"))
        assert isinstance(store, SQLiteStore)
        assert store.db_path == "/tmp/panel.db"

    def test_supabase_when_configured(self):
        settings = Settings(SUPABASE_URL="https://x.supabase.co", SUPABASE_SERVICE_ROLE_KEY="key")
        with patch("credit_panel.storage.supabase_store.SupabaseStore.from_credentials") as factory:
            store = get_store(settings)

        factory.assert_called_once_with("https://x.supabase.co", "key")
        assert store is factory.return_value


class TestParseTimestamp:
    """Test stored timestamp parsing."""

    def test_zulu_suffix(self):
        assert parse_timestamp("2025-01-01T00:00:00Z") == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2025-01-01T00:00:00").tzinfo == timezone.utc

    def test_short_fraction_is_padded(self):
        """Verify fractions with trailing zeros dropped still parse."""
        assert parse_timestamp("2025-01-31T23:59:59.12+00:00") == datetime(
            2025, 1, 31, 23, 59, 59, 120000, tzinfo=timezone.utc
        )

    def test_long_fraction_is_truncated(self):
        parsed = parse_timestamp("2025-01-31T23:59:59.1234567Z")
        assert parsed.microsecond == 123456

    def test_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None
