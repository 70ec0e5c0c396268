import logging
import sqlite3
from contextlib import closing, contextmanager
from typing import Iterator

from config import DB_PATH
from errors import PersistenceFailure

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS state (
        chat_id     INTEGER     PRIMARY KEY,
        state       TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS shown (
        chat_id     INTEGER     NOT NULL,
        ad          TEXT        NOT NULL,
        UNIQUE (chat_id, ad)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        id          INTEGER     PRIMARY KEY     AUTOINCREMENT,
        chat_id     INTEGER     NOT NULL,
        url         TEXT        NOT NULL,
        UNIQUE (chat_id, url)
    );
    """,
)


class DatabaseManager:
    """Thread-safe helper around the radar SQLite database."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or DB_PATH
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        """
        Create a brand-new connection for each call.

        Using short-lived connections avoids the default sqlite restriction
        about accessing the same connection from different threads.
        """
        return sqlite3.connect(self.db_path, check_same_thread=False, timeout=30)

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logging.debug(f"[db] Schema ready at {self.db_path}")

    @contextmanager
    def transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection whose statements commit together on success and
        roll back together on error. Any sqlite error surfaces as
        PersistenceFailure.

        With `immediate` the write lock is taken up front, so concurrent
        writers run one after the other.
        """
        try:
            with closing(self._connect()) as conn:
                with conn:
                    if immediate:
                        conn.execute("BEGIN IMMEDIATE")
                    yield conn
        except sqlite3.Error as error:
            raise PersistenceFailure(f"Database error: {error}") from error
