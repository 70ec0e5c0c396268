from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List
from urllib.parse import urlparse


@dataclass(frozen=True)
class Ad:
    """Represents one listing observed on a results page."""

    identity: str
    name: str
    price: str
    image: str = ""
    posted_label: str = ""


@dataclass(frozen=True)
class SearchQuery:
    """Parameters the listings endpoint needs to paginate one search."""

    category: Dict[str, str]
    page_count: int = 1
    attrs: Dict[str, str] = field(default_factory=dict)
    filters: Dict[str, str] = field(default_factory=dict)

    def params_for_page(self, page: int) -> Dict[str, str]:
        params = {**self.category, "page": str(page), "ordering": "", "q": ""}
        params.update(self.filters)
        params.update(self.attrs)
        return params


class MarketplaceScraper(ABC):
    """Base contract for marketplace scrapers."""

    name: str = "base"
    supported_domains: tuple[str, ...] = tuple()

    def supports(self, target_url: str) -> bool:
        """Return True if the scraper can handle the given URL."""
        domain = urlparse(target_url).netloc.lower()
        return domain in (d.lower() for d in self.supported_domains if d)

    @abstractmethod
    def decompose(self, target_url: str) -> SearchQuery:
        """Turn a search-result URL into the parameters needed to paginate it."""

    @abstractmethod
    def fetch_page(self, query: SearchQuery, page: int) -> List[Ad]:
        """Return the ads found on one results page."""

    @abstractmethod
    def collect_listings(self, target_url: str) -> List[Ad]:
        """Return all ads of the search, deduplicated by identity."""
