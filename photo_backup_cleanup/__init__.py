"""Duplicate detection and backup reconciliation for photo trees."""

__version__ = "1.0.0"
