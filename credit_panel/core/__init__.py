"""
Core modules for Credit Panel.

This package contains the pricing engine, coupon validation,
reseller ranking aggregation and the periodic poller.
"""
