"""Quarterly billing statements for hourly staff."""

__version__ = "0.1.0"
