"""
Data models for storage layer.

Defines the records read from the store and the ranking rows derived from them.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from credit_panel.core.errors import MalformedRecordError

# Postgres trims trailing zeros from fractional seconds
_FRACTION = re.compile(r"(:\d{2})\.(\d+)")


class DiscountType(Enum):
    """How a coupon's discount_value is applied."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class GenerationStatus(Enum):
    """Lifecycle states of a generation job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# Generations that count towards the reseller ranking
RANKED_STATUSES = (GenerationStatus.COMPLETED, GenerationStatus.RUNNING)


@dataclass(frozen=True)
class Coupon:
    """Discount coupon as stored.

    Read-only from the validator's perspective. Recording a use goes
    through the store's atomic increment.
    """
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    is_active: bool = True
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    times_used: int = 0


@dataclass(frozen=True)
class GenerationRecord:
    """Append-only log row of credits earned by a generation job."""
    user_id: str
    credits_earned: Decimal
    status: GenerationStatus = GenerationStatus.COMPLETED


@dataclass(frozen=True)
class RankingEntry:
    """One row of the public reseller leaderboard."""
    position: int
    masked_name: str
    credits: Decimal


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda m: m.group(1) + "." + m.group(2).ljust(6, "0")[:6], text, count=1)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coupon_from_row(row: Dict[str, Any]) -> Coupon:
    """Build a Coupon from a store row.

    Raises:
        MalformedRecordError: If the row is missing fields or has bad values
    """
    try:
        return Coupon(
            id=str(row["id"]),
            code=str(row["code"]),
            discount_type=DiscountType(row["discount_type"]),
            discount_value=Decimal(str(row["discount_value"])),
            is_active=bool(row.get("is_active", True)),
            expires_at=parse_timestamp(row.get("expires_at")),
            max_uses=None if row.get("max_uses") is None else int(row["max_uses"]),
            times_used=int(row.get("times_used") or 0),
        )
    except (KeyError, ValueError, TypeError, ArithmeticError) as e:
        raise MalformedRecordError(f"Malformed coupon record: {e}") from e
