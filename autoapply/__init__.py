"""Automated job discovery and application engine."""

__version__ = "0.1.0"
