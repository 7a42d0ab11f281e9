"""Growora adaptive assessment and progression engine."""

__version__ = "1.0.0"
