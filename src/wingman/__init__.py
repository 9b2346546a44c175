"""Wingman: observation and decision coordinator."""

__version__ = "0.1.0"
