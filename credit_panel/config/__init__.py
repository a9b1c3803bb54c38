"""
Configuration for Credit Panel.

Environment settings and the YAML panel configuration.
"""
