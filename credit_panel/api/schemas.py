"""
Request and response bodies for the HTTP API.
"""

from decimal import Decimal
from typing import List, Optional, Union

from pydantic import BaseModel

from credit_panel.core.coupons import CouponValidation
from credit_panel.storage.models import RankingEntry


def json_number(value: Decimal) -> Union[int, float]:
    """Decimal as a JSON number, integral values without a fraction."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class CouponRequest(BaseModel):
    code: Optional[str] = None
    amount: Optional[float] = None


class CouponRejected(BaseModel):
    valid: bool = False
    error: str


class CouponAccepted(BaseModel):
    valid: bool = True
    discount: float
    final_amount: float
    discount_type: str
    discount_value: float
    description: str

    @classmethod
    def from_validation(cls, result: CouponValidation) -> "CouponAccepted":
        return cls(
            discount=float(result.discount),
            final_amount=float(result.final_amount),
            discount_type=result.discount_type.value,
            discount_value=json_number(result.discount_value),
            description=result.description,
        )


class RankingRow(BaseModel):
    position: int
    name: str
    credits: Union[int, float]

    @classmethod
    def from_entry(cls, entry: RankingEntry) -> "RankingRow":
        return cls(position=entry.position, name=entry.masked_name, credits=json_number(entry.credits))


class RankingResponse(BaseModel):
    ranking: List[RankingRow]
