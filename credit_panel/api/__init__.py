"""
HTTP API for Credit Panel.
"""
