"""
Configuration management and loading.

Handles the YAML panel configuration (coupon floor and ranking limits).
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class CouponConfig:
    """Coupon validation settings."""
    minimum_purchase: Decimal = Decimal("5.00")

    def __post_init__(self):
        """Validate the purchase floor is positive."""
        if self.minimum_purchase <= 0:
            raise ValueError("minimum_purchase must be > 0")


@dataclass(frozen=True)
class RankingConfig:
    """Reseller ranking settings."""
    min_credits: Decimal = Decimal("50")
    limit: int = 10
    page_size: int = 1000
    identity_page_size: int = 1000

    def __post_init__(self):
        """Validate ranking limits."""
        if self.min_credits < 0:
            raise ValueError("min_credits must be >= 0")
        if self.limit <= 0:
            raise ValueError("limit must be > 0")
        if self.page_size <= 0:
            raise ValueError("page_size must be > 0")
        if self.identity_page_size <= 0:
            raise ValueError("identity_page_size must be > 0")


@dataclass(frozen=True)
class PanelConfig:
    """Complete panel configuration."""
    coupons: CouponConfig = field(default_factory=CouponConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)


def load_panel_config(path: str) -> PanelConfig:
    """Load and validate panel configuration from a YAML file.

    Strict validation: unknown keys and wrong types are errors rather
    than silently ignored. Sections that are left out use defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated PanelConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Panel config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'coupons', 'ranking'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    coupons_data = _section(raw_config, 'coupons', {'minimum_purchase'})
    coupons = CouponConfig()
    if 'minimum_purchase' in coupons_data:
        coupons = CouponConfig(
            minimum_purchase=_decimal(coupons_data['minimum_purchase'], "coupons.minimum_purchase")
        )

    ranking_data = _section(
        raw_config, 'ranking', {'min_credits', 'limit', 'page_size', 'identity_page_size'}
    )
    defaults = RankingConfig()
    ranking = RankingConfig(
        min_credits=_decimal(ranking_data.get('min_credits', defaults.min_credits), "ranking.min_credits"),
        limit=_integer(ranking_data.get('limit', defaults.limit), "ranking.limit"),
        page_size=_integer(ranking_data.get('page_size', defaults.page_size), "ranking.page_size"),
        identity_page_size=_integer(
            ranking_data.get('identity_page_size', defaults.identity_page_size),
            "ranking.identity_page_size"
        )
    )

    return PanelConfig(coupons=coupons, ranking=ranking)


def load_optional_config(path: Optional[str]) -> PanelConfig:
    """Load the config file if a path is given, else return defaults."""
    if not path:
        return PanelConfig()
    return load_panel_config(path)


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict[str, Any]:
    """Fetch an optional section and reject unknown keys in it."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return data


def _decimal(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError(f"'{path}' must be a number")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{path}' must be a number")


def _integer(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{path}' must be an integer")
    return value
