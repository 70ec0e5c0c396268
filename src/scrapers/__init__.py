"""
Scraper package exporting marketplace implementations.
"""

from .base import Ad, MarketplaceScraper, SearchQuery  # noqa: F401
from .bazaraki_scraper import BazarakiScraper  # noqa: F401

__all__ = [
    "Ad",
    "MarketplaceScraper",
    "SearchQuery",
    "BazarakiScraper",
]
