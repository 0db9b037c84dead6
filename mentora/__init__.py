"""Mentora interview and study session backend."""

__version__ = "0.1.0"
