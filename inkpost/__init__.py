"""Inkpost: a Medium-style publishing API."""

__version__ = "1.0.0"
