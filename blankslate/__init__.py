"""Blankslate zero-based budgeting engine."""

__version__ = "0.1.0"
