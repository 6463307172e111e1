"""Yieldera field reports: queued agronomic reports for farm fields."""
__version__ = "0.1.0"
