"""
Pricing calculations for credit purchases.

Converts credit quantities into prices by interpolating the unit price
between fixed anchor tiers, and answers the inverse question of how many
credits a balance can buy.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from .errors import ValidationError

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")

# Storefront sells credits in multiples of this step
CREDIT_STEP = 5

# Search ceiling for credits_from_balance, well above any realistic purchase
UPPER_BOUND = 500_000


@dataclass(frozen=True)
class PriceTier:
    """Anchor point of the price curve."""
    credits: int
    price: Decimal

    @property
    def unit_price(self) -> Decimal:
        """Price of a single credit at this tier."""
        return self.price / Decimal(self.credits)


@dataclass(frozen=True)
class Package:
    """Fixed credit package shown in the storefront."""
    name: str
    credits: int
    price: Decimal
    discount_label: Optional[str] = None


def to_money(value: Decimal) -> Decimal:
    """Quantize to currency precision, rounding half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Amount, field: str = "value") -> Decimal:
    """Convert a numeric input to Decimal without float artefacts.

    Raises:
        ValidationError: If the value is not numeric or not finite
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


class PricingTable:
    """Ordered set of price tiers defining the price curve."""

    def __init__(self, tiers: Tuple[PriceTier, ...]):
        """Validate and store the tiers.

        Args:
            tiers: Anchor tiers ordered by ascending credits

        Raises:
            ValueError: If the tiers are empty, unsorted or non-positive
        """
        if len(tiers) < 2:
            raise ValueError("at least two price tiers are required")
        for tier in tiers:
            if tier.credits <= 0:
                raise ValueError("tier credits must be > 0")
            if tier.price < 0:
                raise ValueError("tier price must be >= 0")
        for low, high in zip(tiers, tiers[1:]):
            if low.credits >= high.credits:
                raise ValueError("tiers must be strictly ascending by credits")
        self.tiers = tuple(tiers)

    def price(self, credits: int) -> Decimal:
        """Price for a credit quantity.

        Below the first tier and above the last tier the price scales
        linearly with that tier's unit price. Between two tiers the unit
        price is interpolated, then multiplied by the quantity.

        Args:
            credits: Number of credits

        Returns:
            Price rounded to 2 decimal places

        Raises:
            ValidationError: If credits is not an integer
        """
        if isinstance(credits, bool) or not isinstance(credits, int):
            raise ValidationError("credits must be an integer")
        if credits <= 0:
            return Decimal("0.00")

        first, last = self.tiers[0], self.tiers[-1]
        quantity = Decimal(credits)

        if credits <= first.credits:
            return to_money(quantity * first.unit_price)
        if credits >= last.credits:
            # Extrapolated, not clamped to the last tier's total
            return to_money(quantity * last.unit_price)

        for low, high in zip(self.tiers, self.tiers[1:]):
            if low.credits <= credits <= high.credits:
                t = (quantity - low.credits) / Decimal(high.credits - low.credits)
                unit = low.unit_price + t * (high.unit_price - low.unit_price)
                return to_money(quantity * unit)

        # Unreachable for a validated table
        return to_money(quantity * first.unit_price)

    def price_per_100(self, credits: int) -> Decimal:
        """Effective price of 100 credits when buying `credits`.

        Raises:
            ValidationError: If credits is not a positive integer
        """
        if isinstance(credits, bool) or not isinstance(credits, int) or credits <= 0:
            raise ValidationError("credits must be a positive integer")
        return to_money(self.price(credits) / Decimal(credits) * 100)

    def credits_from_balance(self, balance: Amount) -> int:
        """Largest purchasable credit quantity whose price fits in `balance`.

        Binary search over multiples of CREDIT_STEP in [0, UPPER_BOUND].
        Relies on price() being non-decreasing.

        Args:
            balance: Available balance in currency units

        Returns:
            Credits, always a multiple of CREDIT_STEP
        """
        balance = to_decimal(balance, "balance")
        if balance <= 0:
            return 0

        lo, hi = 0, UPPER_BOUND // CREDIT_STEP
        if self.price(hi * CREDIT_STEP) <= balance:
            return hi * CREDIT_STEP

        # Invariant: price(lo) <= balance < price(hi)
        while hi - lo > 1:
            mid = (lo + hi) // 2
            if self.price(mid * CREDIT_STEP) <= balance:
                lo = mid
            else:
                hi = mid
        return lo * CREDIT_STEP


# Anchor prices (30% promotional discount already applied)
DEFAULT_PRICING = PricingTable((
    PriceTier(credits=100, price=Decimal("5.36")),
    PriceTier(credits=1000, price=Decimal("37.50")),
    PriceTier(credits=5000, price=Decimal("160.71")),
    PriceTier(credits=10000, price=Decimal("300.00")),
))

TIERS = DEFAULT_PRICING.tiers


def price(credits: int) -> Decimal:
    """Price for a credit quantity using the default tiers."""
    return DEFAULT_PRICING.price(credits)


def price_per_100(credits: int) -> Decimal:
    """Price of 100 credits at the rate for `credits`, using the default tiers."""
    return DEFAULT_PRICING.price_per_100(credits)


def credits_from_balance(balance: Amount) -> int:
    """Credits affordable with `balance`, using the default tiers."""
    return DEFAULT_PRICING.credits_from_balance(balance)


def _build_packages() -> Tuple[Package, ...]:
    labels = (
        (100, None),
        (500, "10% off"),
        (1000, "20% off"),
        (2000, "30% off"),
        (5000, "40% off"),
        (10000, "44% off"),
    )
    return tuple(
        Package(name=str(credits), credits=credits, price=price(credits), discount_label=label)
        for credits, label in labels
    )


FIXED_PACKAGES = _build_packages()


def format_currency(value: Amount) -> str:
    """Format an amount in Brazilian reais, e.g. ``R$ 1.234,56``."""
    amount = to_money(to_decimal(value))
    sign = "-" if amount < 0 else ""
    # Swap separators from en-US grouping to pt-BR
    digits = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {digits}"
