"""
Supabase-backed record store.

Reads the hosted panel tables through supabase-py query builders.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Set

from supabase import Client, create_client

from credit_panel.core.errors import StoreError
from .models import Coupon, GenerationRecord, GenerationStatus, RANKED_STATUSES, coupon_from_row
from .repository import RecordStore

logger = logging.getLogger(__name__)


class SupabaseStore(RecordStore):
    """Record store over a Supabase project (service-role client)."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, service_key: str) -> "SupabaseStore":
        """Create a store from the project URL and service-role key."""
        if not url or not service_key:
            raise RuntimeError("Supabase URL/Key not configured. See .env")
        return cls(create_client(url, service_key))

    def _execute(self, what: str, query):
        try:
            return query.execute()
        except Exception as e:
            logger.error("Supabase error on %s: %s", what, e)
            raise StoreError(f"Store request failed: {what}") from e

    def _user_ids(self, what: str, query) -> Set[str]:
        response = self._execute(what, query)
        return {row["user_id"] for row in response.data or []}

    def find_active_coupon(self, code: str) -> Optional[Coupon]:
        response = self._execute(
            "coupons",
            self.client.table("coupons").select("*")
                .eq("code", code)
                .eq("is_active", True)
                .limit(1)
        )
        if not response.data:
            return None
        return coupon_from_row(response.data[0])

    def list_banned_user_ids(self) -> Set[str]:
        return self._user_ids("banned_users", self.client.table("banned_users").select("user_id"))

    def list_admin_user_ids(self) -> Set[str]:
        return self._user_ids(
            "user_roles",
            self.client.table("user_roles").select("user_id").eq("role", "admin")
        )

    def list_negative_balance_user_ids(self) -> Set[str]:
        return self._user_ids(
            "wallets",
            self.client.table("wallets").select("user_id").lt("balance", 0)
        )

    def fetch_generations(self, offset: int, limit: int) -> List[GenerationRecord]:
        response = self._execute(
            "generations",
            self.client.table("generations").select("user_id, credits_earned, status")
                .not_.is_("user_id", "null")
                .gt("credits_earned", 0)
                .in_("status", [status.value for status in RANKED_STATUSES])
                .order("id")
                .range(offset, offset + limit - 1)
        )
        return [
            GenerationRecord(
                user_id=row["user_id"],
                credits_earned=Decimal(str(row["credits_earned"] or 0)),
                status=GenerationStatus(row.get("status") or GenerationStatus.COMPLETED.value)
            )
            for row in response.data or []
        ]

    def list_user_emails(self, per_page: int = 1000) -> Dict[str, str]:
        try:
            users = self.client.auth.admin.list_users(page=1, per_page=per_page)
        except Exception as e:
            logger.error("Supabase error listing users: %s", e)
            raise StoreError("Store read failed: users") from e
        return {str(user.id): user.email or "" for user in users or []}

    def increment_coupon_usage(self, coupon_id: str) -> bool:
        # increment_coupon_usage is a database function doing the conditional update
        try:
            response = self.client.rpc(
                "increment_coupon_usage", {"p_coupon_id": coupon_id}
            ).execute()
        except Exception as e:
            logger.error("Supabase error incrementing coupon %s: %s", coupon_id, e)
            raise StoreError("Store write failed: coupons") from e
        return response.data is True

    def insert_coupon(self, coupon: Coupon) -> None:
        row = {
            "code": coupon.code,
            "discount_type": coupon.discount_type.value,
            "discount_value": float(coupon.discount_value),
            "is_active": coupon.is_active,
            "expires_at": coupon.expires_at.isoformat() if coupon.expires_at else None,
            "max_uses": coupon.max_uses,
            "times_used": coupon.times_used,
        }
        if coupon.id:
            row["id"] = coupon.id
        self._execute("coupons", self.client.table("coupons").insert(row))

    def insert_generation(self, record: GenerationRecord) -> None:
        self._execute(
            "generations",
            self.client.table("generations").insert({
                "user_id": record.user_id,
                "credits_earned": float(record.credits_earned),
                "status": record.status.value,
            })
        )
