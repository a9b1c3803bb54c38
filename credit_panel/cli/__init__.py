"""
Command line interface for Credit Panel.
"""
