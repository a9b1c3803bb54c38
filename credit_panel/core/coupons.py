"""
Coupon validation.

Checks a coupon code against a purchase amount and computes the discount.
Validation is read-only: recording a use is the caller's job, through the
store's atomic increment, once the purchase actually goes through.

Check Order:
1. Input - non-empty code, amount at or above the minimum purchase
2. Lookup - active coupon with the normalized code
3. Expiry - coupons past expires_at are rejected before usage is considered
4. Usage - times_used must be below max_uses
5. Floor - the discounted amount must still clear the minimum purchase
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .errors import ValidationError
from .pricing import Amount, format_currency, to_decimal, to_money
from credit_panel.storage.models import Coupon, DiscountType
from credit_panel.storage.repository import RecordStore

DEFAULT_MINIMUM_PURCHASE = Decimal("5.00")


class CouponRejection(Enum):
    """Why a coupon was not accepted."""
    INVALID_CODE = "invalid_code"
    BELOW_MINIMUM = "below_minimum"
    NOT_FOUND_OR_DISABLED = "not_found_or_disabled"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    BELOW_MINIMUM_AFTER_DISCOUNT = "below_minimum_after_discount"

    @property
    def is_input_error(self) -> bool:
        """True for malformed requests, as opposed to business-rule rejections."""
        return self in (CouponRejection.INVALID_CODE, CouponRejection.BELOW_MINIMUM)


@dataclass(frozen=True)
class CouponValidation:
    """Outcome of validating a coupon against an amount."""
    valid: bool
    reason: Optional[CouponRejection] = None
    message: str = ""
    discount: Optional[Decimal] = None
    final_amount: Optional[Decimal] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    description: Optional[str] = None

    @classmethod
    def reject(cls, reason: CouponRejection, message: str) -> "CouponValidation":
        return cls(valid=False, reason=reason, message=message)


def normalize_code(code: str) -> str:
    """Canonical form coupon codes are stored under."""
    return code.strip().upper()


def compute_discount(coupon: Coupon, amount: Decimal) -> Decimal:
    """Discount the coupon grants on `amount`, rounded to cents.

    Fixed discounts are capped at the amount so the net never goes negative.
    """
    if coupon.discount_type == DiscountType.PERCENTAGE:
        return to_money(amount * coupon.discount_value / 100)
    return to_money(min(coupon.discount_value, amount))


def describe_discount(coupon: Coupon) -> str:
    """Human readable discount, e.g. ``10% off`` or ``R$ 50,00 off``."""
    if coupon.discount_type == DiscountType.PERCENTAGE:
        value = coupon.discount_value.normalize()
        return f"{value:f}% off"
    return f"{format_currency(coupon.discount_value)} off"


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are stored in UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _parse_amount(amount: Any) -> Optional[Decimal]:
    if amount is None:
        return None
    try:
        return to_decimal(amount, "amount")
    except ValidationError:
        return None


def validate_coupon(
    store: RecordStore,
    code: Any,
    amount: Any,
    minimum_purchase: Amount = DEFAULT_MINIMUM_PURCHASE,
    now: Optional[datetime] = None
) -> CouponValidation:
    """Validate a coupon code for a purchase amount.

    Args:
        store: Record store to look the coupon up in
        code: Coupon code as entered by the customer
        amount: Gross purchase amount
        minimum_purchase: Smallest amount allowed before and after discount
        now: Current time, defaults to the UTC clock

    Returns:
        CouponValidation; rejections carry a reason and message

    Raises:
        StoreError: If the coupon lookup fails
        MalformedRecordError: If the stored coupon cannot be interpreted
    """
    minimum = to_money(to_decimal(minimum_purchase, "minimum_purchase"))

    if not isinstance(code, str) or not code.strip():
        return CouponValidation.reject(CouponRejection.INVALID_CODE, "Invalid coupon code")

    gross = _parse_amount(amount)
    if gross is None or gross < minimum:
        return CouponValidation.reject(
            CouponRejection.BELOW_MINIMUM,
            f"Minimum amount is {format_currency(minimum)}"
        )

    coupon = store.find_active_coupon(normalize_code(code))
    if coupon is None:
        return CouponValidation.reject(
            CouponRejection.NOT_FOUND_OR_DISABLED,
            "Invalid or disabled coupon. This promotion has ended"
        )

    now = _as_utc(now or datetime.now(timezone.utc))
    if coupon.expires_at is not None and _as_utc(coupon.expires_at) < now:
        return CouponValidation.reject(CouponRejection.EXPIRED, "Coupon expired")

    if coupon.max_uses is not None and coupon.times_used >= coupon.max_uses:
        return CouponValidation.reject(CouponRejection.EXHAUSTED, "Coupon usage limit reached")

    discount = compute_discount(coupon, gross)
    final_amount = to_money(gross - discount)
    if final_amount < minimum:
        return CouponValidation.reject(
            CouponRejection.BELOW_MINIMUM_AFTER_DISCOUNT,
            f"Minimum amount with this coupon is {format_currency(minimum + discount)}"
        )

    return CouponValidation(
        valid=True,
        discount=discount,
        final_amount=final_amount,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        description=describe_discount(coupon),
    )
