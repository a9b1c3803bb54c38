# credit_panel/demo/seed_demo_data.py

from datetime import datetime, timezone
from decimal import Decimal

from credit_panel.storage.models import Coupon, DiscountType, GenerationRecord, GenerationStatus
from credit_panel.storage.repository import SQLiteStore

DEMO_COUPONS = [
    Coupon(id="demo-welcome", code="WELCOME10", discount_type=DiscountType.PERCENTAGE,
           discount_value=Decimal("10")),
    Coupon(id="demo-fixed", code="FIVEOFF", discount_type=DiscountType.FIXED,
           discount_value=Decimal("5.00"), max_uses=100),
    Coupon(id="demo-expired", code="BLACKFRIDAY", discount_type=DiscountType.PERCENTAGE,
           discount_value=Decimal("30"),
           expires_at=datetime(2020, 11, 30, tzinfo=timezone.utc)),
]

DEMO_USERS = {
    "u-ana": "ana.souza@example.com",
    "u-bruno": "bruno99@example.com",
    "u-carla": "carla@example.com",
    "u-admin": "admin@example.com",
    "u-banned": "spammer@example.com",
}

DEMO_GENERATIONS = [
    ("u-ana", "400"), ("u-ana", "350"),
    ("u-bruno", "300"), ("u-bruno", "120"),
    ("u-carla", "50"),
    ("u-admin", "5000"),
    ("u-banned", "1000"),
]


def seed_demo_data(store: SQLiteStore) -> None:
    """Populate a local store with a small demo dataset."""
    store.initialize_schema()

    for coupon in DEMO_COUPONS:
        if store.find_active_coupon(coupon.code) is None:
            store.insert_coupon(coupon)

    for user_id, email in DEMO_USERS.items():
        store.insert_user(user_id, email)
        store.set_wallet_balance(user_id, Decimal("0"))

    store.set_user_role("u-admin", "admin")
    store.ban_user("u-banned")

    for user_id, credits in DEMO_GENERATIONS:
        store.insert_generation(GenerationRecord(
            user_id=user_id,
            credits_earned=Decimal(credits),
            status=GenerationStatus.COMPLETED
        ))


if __name__ == "__main__":
    seed_demo_data(SQLiteStore())
    print("Demo panel data inserted")
