"""Spatial helpers — great-circle distance and radius tests."""
