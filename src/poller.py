from __future__ import annotations

import logging
import logging_config  # noqa: F401
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Iterator, List

from ad_store import AdStore
from config import SUBSCRIPTION_WORKERS
from errors import ParseFailure, PersistenceFailure, RadarError
from notification_manager import Messenger
from scrapers.base import Ad, MarketplaceScraper
from scrapers.bazaraki_scraper import BazarakiScraper
from subscription_registry import Subscription, SubscriptionRegistry

# Date labels are compared as opaque text, never parsed
FRESH_LABEL_MARKERS = ("Today",)


def is_fresh_label(posted_label: str) -> bool:
    """An empty label or one mentioning today counts as freshly posted."""
    return not posted_label or any(marker in posted_label for marker in FRESH_LABEL_MARKERS)


@dataclass
class CheckResult:
    """Outcome of one subscription within a polling cycle."""

    subscription: Subscription
    notified: List[Ad] = field(default_factory=list)
    error: Exception | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class SingleFlight:
    """Keeps two threads from working on the same key at the same time."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._in_flight: set = set()

    @contextmanager
    def claim(self, key: Hashable, wait: bool = False) -> Iterator[bool]:
        """
        Yield True if the key was claimed. With `wait` the call blocks until
        the current holder releases the key, otherwise it yields False
        straight away.
        """
        with self._condition:
            while wait and key in self._in_flight:
                self._condition.wait()
            acquired = key not in self._in_flight
            if acquired:
                self._in_flight.add(key)
        try:
            yield acquired
        finally:
            if acquired:
                with self._condition:
                    self._in_flight.discard(key)
                    self._condition.notify_all()


class Poller:
    """
    Re-runs every saved search, works out which ads are new for its
    subscriber and hands them to the messenger.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        ad_store: AdStore,
        messenger: Messenger,
        scrapers: List[MarketplaceScraper] | None = None,
        subscription_workers: int = SUBSCRIPTION_WORKERS
    ) -> None:
        self.registry = registry
        self.ad_store = ad_store
        self.messenger = messenger
        self.scrapers = scrapers if scrapers is not None else [BazarakiScraper()]
        self.subscription_workers = max(1, subscription_workers)
        self._single_flight = SingleFlight()

    def collect_ads(self, search_url: str) -> List[Ad]:
        scraper = self._resolve_scraper(search_url)
        if scraper is None:
            raise ParseFailure(f"No scraper available for URL: {search_url}")
        return scraper.collect_listings(search_url)

    def fresh_candidates(self, subscriber_id, ads: Iterable[Ad]) -> List[Ad]:
        """Ads not yet shown to the subscriber and not dated in the past."""
        shown = self.ad_store.shown_identities(subscriber_id)
        return [ad for ad in ads if ad.identity not in shown and is_fresh_label(ad.posted_label)]

    def ingest_baseline(self, subscriber_id, search_url: str) -> int:
        """
        Subscribe to a search and record every ad it currently returns as
        shown, without notifying, so that the next cycles report only ads
        posted afterwards.

        Returns:
            int: The number of ads recorded.

        Raises:
            ParseFailure, FetchFailure, PersistenceFailure: The subscription
            was not created.
        """
        with self._single_flight.claim((subscriber_id, search_url), wait=True):
            ads = self.collect_ads(search_url)
            self.ad_store.mark_shown(subscriber_id, (ad.identity for ad in ads))
            self.registry.add(subscriber_id, search_url)
        logging.info(f"[poller] Baseline of {len(ads)} ads recorded for {subscriber_id}: {search_url}")
        return len(ads)

    def check_subscription(self, subscription: Subscription) -> CheckResult:
        key = (subscription.subscriber_id, subscription.search_url)
        with self._single_flight.claim(key) as acquired:
            if not acquired:
                logging.info(f"[poller] {subscription.search_url} is already being checked, skipping.")
                return CheckResult(subscription, skipped=True)
            try:
                ads = self.collect_ads(subscription.search_url)
                candidates = self.fresh_candidates(subscription.subscriber_id, ads)
                # Another search of the same subscriber may record an ad first; it notifies, we don't
                recorded = set(self.ad_store.mark_shown(subscription.subscriber_id, (ad.identity for ad in candidates)))
                fresh = [ad for ad in candidates if ad.identity in recorded]
            except RadarError as error:
                logging.error(f"[poller] Subscription {subscription.id} failed, retrying next cycle: {error}")
                return CheckResult(subscription, error=error)

            logging.info(f"[poller] {len(fresh)} new ads for subscription {subscription.id}")
            for idx, ad in enumerate(fresh, 1):
                try:
                    self.messenger.notify(subscription.subscriber_id, Messenger.build_notification(ad))
                except Exception as e:
                    logging.error(f"[poller] Failed to send notification for ad #{idx} ({ad.identity}): {e}")
        return CheckResult(subscription, notified=fresh)

    def run_cycle(self) -> List[CheckResult]:
        """Check every subscription once. One failing subscription never stops the others."""
        try:
            subscriptions = self.registry.list_all()
        except PersistenceFailure as error:
            logging.error(f"[poller] Could not load subscriptions: {error}")
            return []
        if not subscriptions:
            logging.info("[poller] No subscriptions to check.")
            return []

        results: List[CheckResult] = []
        worker_count = max(1, min(self.subscription_workers, len(subscriptions)))
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            futures = {executor.submit(self.check_subscription, sub): sub for sub in subscriptions}
            for future in as_completed(futures):
                subscription = futures[future]
                try:
                    results.append(future.result())
                except Exception as exc:
                    logging.error(f"[poller] Unexpected error checking {subscription.search_url}: {exc}")
                    results.append(CheckResult(subscription, error=exc))

        notified = sum(len(result.notified) for result in results)
        failed = sum(1 for result in results if not result.ok)
        logging.info(
            f"[poller] Cycle checked {len(results)} subscriptions: {notified} notifications, {failed} failures."
        )
        return results

    def _resolve_scraper(self, target_url: str) -> MarketplaceScraper | None:
        for scraper in self.scrapers:
            if scraper.supports(target_url):
                return scraper
        return None
