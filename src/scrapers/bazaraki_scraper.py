from __future__ import annotations

import logging
import logging_config  # noqa: F401  # ensure logging config is loaded
import threading
from concurrent.futures import ThreadPoolExecutor
from itertools import chain
from typing import Dict, Iterable, List
from urllib.parse import parse_qsl, urlparse

import requests
from bs4 import BeautifulSoup, Tag

from config import MAX_CONNECTIONS, PAGE_WORKERS, REQUEST_TIMEOUT
from errors import FetchFailure, ParseFailure
from scrapers.base import Ad, MarketplaceScraper, SearchQuery
from utils import get_header

LISTING_ENDPOINT = "https://www.bazaraki.com/ajax-items-list/"
LISTING_FIELD = "listing"
CATEGORY_FIELDS = ("rubric", "c")
ATTRS_PREFIX = "attrs_"
ATTR_SEPARATOR = "---"

AD_CARD_SELECTOR = '[itemtype="http://schema.org/Product"]'
AD_NAME_SELECTOR = '[itemprop="name"]'
AD_PRICE_SELECTOR = '[itemprop="price"]'
AD_IMAGE_SELECTOR = '[itemprop="image"]'
AD_DATE_SELECTOR = ".announcement-block__date"
PAGINATION_SELECTOR = "[data-page].page-number"


def extract_path_attrs(path: str) -> Dict[str, str]:
    """
    Collect the `key---value` segments of a search path as endpoint filters.

    Segments without the separator (the category slugs) are ignored. Only
    the text between the first and second separator is the value.
    """
    attrs: Dict[str, str] = {}
    for segment in path.split("/"):
        if ATTR_SEPARATOR not in segment:
            continue
        parts = segment.split(ATTR_SEPARATOR)
        attrs[f"{ATTRS_PREFIX}{parts[0]}"] = parts[1]
    return attrs


def dedupe_ads(ads: Iterable[Ad]) -> List[Ad]:
    """Keep the first ad seen for every identity, preserving order."""
    seen: set[str] = set()
    unique: List[Ad] = []
    for ad in ads:
        if ad.identity in seen:
            continue
        seen.add(ad.identity)
        unique.append(ad)
    return unique


def parse_ad(node: Tag) -> Ad:
    """
    Build an Ad from one ad card.

    Raises:
        ParseFailure: If the name, link or price of the card is missing.
    """
    name_node = node.select_one(AD_NAME_SELECTOR)
    price_node = node.select_one(AD_PRICE_SELECTOR)
    if name_node is None or price_node is None:
        raise ParseFailure("Ad card without name or price marker")

    name = name_node.get_text().strip()
    identity = (name_node.get("href") or "").strip()
    price = (price_node.get("content") or "").strip()
    if not name or not identity or not price:
        raise ParseFailure(f"Ad card with empty required field: {identity or name!r}")

    image_node = node.select_one(AD_IMAGE_SELECTOR)
    image = (image_node.get("src") or "") if image_node is not None else ""
    date_node = node.select_one(AD_DATE_SELECTOR)
    posted_label = date_node.get_text().strip().split(",")[0].strip() if date_node is not None else ""

    return Ad(identity=identity, name=name, price=price, image=image, posted_label=posted_label)


def parse_listing_fragment(html: str, strict: bool = False) -> List[Ad]:
    """
    Extract the ads contained in a listing fragment.

    A malformed card is skipped unless `strict` is set, in which case its
    ParseFailure propagates.
    """
    content = BeautifulSoup(html, "html.parser")
    ads: List[Ad] = []
    for idx, node in enumerate(content.select(AD_CARD_SELECTOR), start=1):
        try:
            ads.append(parse_ad(node))
        except ParseFailure as error:
            if strict:
                raise
            logging.debug(f"[bazaraki] Skipping ad card #{idx}: {error}")
    return ads


class BazarakiScraper(MarketplaceScraper):
    """Scraper for Bazaraki search results, backed by the ajax listing endpoint."""

    name = "bazaraki"
    supported_domains = ("www.bazaraki.com", "bazaraki.com")

    def __init__(
        self,
        session: requests.Session | None = None,
        page_workers: int = PAGE_WORKERS,
        max_connections: int = MAX_CONNECTIONS,
        timeout: int = REQUEST_TIMEOUT,
        strict: bool = False
    ) -> None:
        self.page_workers = max(1, page_workers)
        self.timeout = timeout
        self.strict = strict
        self._session = session
        self._session_local = threading.local()
        # Shared by every thread of the process, whatever pool it runs in
        self._connections = threading.BoundedSemaphore(max(1, max_connections))

    def decompose(self, target_url: str) -> SearchQuery:
        """
        Fetch the search page once and read the parameters needed to paginate it.

        Raises:
            ParseFailure: If the URL is not a Bazaraki URL or the page lacks
            the hidden category fields.
            FetchFailure: If the page cannot be downloaded.
        """
        if not self.supports(target_url):
            raise ParseFailure(
                f"Bad URL! Bazaraki Radar is configured to process {', '.join(self.supported_domains)} links only."
            )
        response = self._request(target_url)
        content = BeautifulSoup(response.text, "html.parser")
        category = self._get_category(content, target_url)
        page_count = self._get_last_page(content)

        parsed_url = urlparse(target_url)
        query = SearchQuery(
            category=category,
            page_count=page_count,
            attrs=extract_path_attrs(parsed_url.path),
            filters=dict(parse_qsl(parsed_url.query, keep_blank_values=True)),
        )
        logging.debug(f"[{self.name}] Decomposed {target_url}: {query}")
        return query

    def fetch_page(self, query: SearchQuery, page: int) -> List[Ad]:
        response = self._request(
            LISTING_ENDPOINT,
            params=query.params_for_page(page),
            headers={"x-requested-with": "XMLHttpRequest"},
        )
        try:
            payload = response.json()
        except ValueError as error:
            raise ParseFailure(f"Listing response for page {page} is not JSON") from error
        if not isinstance(payload, dict) or not isinstance(payload.get(LISTING_FIELD), str):
            raise ParseFailure(f"Listing response for page {page} has no '{LISTING_FIELD}' fragment")

        ads = parse_listing_fragment(payload[LISTING_FIELD], strict=self.strict)
        logging.debug(f"[{self.name}] Found {len(ads)} ads on page {page}")
        return ads

    def collect_listings(self, target_url: str) -> List[Ad]:
        logging.info(f"[{self.name}] Starting scraping for target URL: {target_url}")
        query = self.decompose(target_url)
        pages = range(1, query.page_count + 1)
        worker_count = max(1, min(self.page_workers, len(pages)))

        # map() yields in page order and re-raises the first page failure
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            page_results = list(executor.map(lambda page: self.fetch_page(query, page), pages))

        listings = dedupe_ads(chain.from_iterable(page_results))
        logging.info(
            f"[{self.name}] Finished scraping {query.page_count} page(s). Total unique ads found: {len(listings)}"
        )
        return listings

    def _request(self, url: str, params: Dict[str, str] | None = None, headers: Dict[str, str] | None = None):
        session = self._get_session()
        with self._connections:
            try:
                response = session.get(url, params=params, headers=headers, timeout=self.timeout)
                response.raise_for_status()
            except requests.exceptions.RequestException as error:
                raise FetchFailure(f"Connection error for {url}: {error}") from error
        return response

    def _get_session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._session_local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(get_header())
            logging.debug(f"[{self.name}] Initialized new HTTP session")
            self._session_local.session = session
        return session

    def _get_category(self, content: BeautifulSoup, target_url: str) -> Dict[str, str]:
        category: Dict[str, str] = {}
        for field_name in CATEGORY_FIELDS:
            node = content.select_one(f'input[name="{field_name}"]')
            if node is None or not node.has_attr("value"):
                raise ParseFailure(f"Unrecognized search page (no '{field_name}' field): {target_url}")
            category[field_name] = node["value"]
        return category

    def _get_last_page(self, content: BeautifulSoup) -> int:
        page_numbers = []
        for node in content.select(PAGINATION_SELECTOR):
            try:
                page_numbers.append(int(node["data-page"]))
            except ValueError:
                continue
        return max(page_numbers, default=1)
