import logging
from typing import Iterable, List, Set

from database_manager import DatabaseManager


class AdStore:
    """Remembers which ad identities were already shown to which subscriber."""

    def __init__(self, database: DatabaseManager) -> None:
        self.database = database

    def has_been_shown(self, subscriber_id, identity: str) -> bool:
        """
        Returns True if the ad was already surfaced to the subscriber,
        otherwise False.
        """
        query = "SELECT 1 FROM shown WHERE chat_id = ? AND ad = ? LIMIT 1"
        with self.database.transaction() as conn:
            exists = conn.execute(query, (subscriber_id, identity)).fetchone() is not None
        logging.debug(f"[db] has_been_shown -> {exists} for {subscriber_id}/{identity}")
        return exists

    def shown_identities(self, subscriber_id) -> Set[str]:
        """Returns every ad identity already surfaced to the subscriber."""
        query = "SELECT ad FROM shown WHERE chat_id = ?"
        with self.database.transaction() as conn:
            return {row[0] for row in conn.execute(query, (subscriber_id,))}

    def mark_shown(self, subscriber_id, identities: Iterable[str]) -> List[str]:
        """
        Records the identities as shown to the subscriber in a single
        transaction. Pairs that are already recorded are ignored.

        Returns:
            list[str]: The identities this call recorded, in input order.
            Identities recorded earlier (by any thread) are left out.
        """
        identities = list(dict.fromkeys(identities))
        if not identities:
            return []
        sql = "INSERT OR IGNORE INTO shown (chat_id, ad) VALUES (?, ?)"
        inserted: List[str] = []
        with self.database.transaction(immediate=True) as conn:
            for identity in identities:
                if conn.execute(sql, (subscriber_id, identity)).rowcount == 1:
                    inserted.append(identity)
        logging.debug(f"[db] Marked {len(inserted)} of {len(identities)} ads as shown for {subscriber_id}")
        return inserted
