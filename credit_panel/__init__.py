"""
Credit Panel.

Pricing, coupon validation and reseller ranking for a credit-reselling panel.
"""

__version__ = "0.1.0"
