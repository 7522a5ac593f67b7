from .base import JobSearchBase
from .mock import MockSource
from .serpapi import SerpApiSource

__all__ = ["JobSearchBase", "MockSource", "SerpApiSource"]
