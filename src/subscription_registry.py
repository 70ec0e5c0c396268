import logging
from dataclasses import dataclass
from typing import List

from database_manager import DatabaseManager


@dataclass(frozen=True)
class Subscription:
    id: int
    subscriber_id: int
    search_url: str


class SubscriptionRegistry:
    """Saved searches, one row per (subscriber, search URL)."""

    def __init__(self, database: DatabaseManager) -> None:
        self.database = database

    def add(self, subscriber_id, url: str) -> None:
        """Adds the subscription; re-adding an existing one is a no-op."""
        sql = "INSERT OR IGNORE INTO subscriptions (chat_id, url) VALUES (?, ?)"
        with self.database.transaction() as conn:
            conn.execute(sql, (subscriber_id, url))
        logging.info(f"[db] Subscription stored for {subscriber_id}: {url}")

    def list_for(self, subscriber_id) -> List[Subscription]:
        """Returns the subscriber's subscriptions in creation order."""
        query = "SELECT id, chat_id, url FROM subscriptions WHERE chat_id = ? ORDER BY id"
        with self.database.transaction() as conn:
            rows = conn.execute(query, (subscriber_id,)).fetchall()
        return [Subscription(*row) for row in rows]

    def list_all(self) -> List[Subscription]:
        query = "SELECT id, chat_id, url FROM subscriptions ORDER BY id"
        with self.database.transaction() as conn:
            rows = conn.execute(query).fetchall()
        return [Subscription(*row) for row in rows]

    def remove(self, subscription_id: int) -> bool:
        """Deletes the subscription. Returns False if it did not exist."""
        with self.database.transaction() as conn:
            cursor = conn.execute("DELETE FROM subscriptions WHERE id = ?", (subscription_id,))
        removed = cursor.rowcount > 0
        logging.info(f"[db] Subscription {subscription_id} removed: {removed}")
        return removed
