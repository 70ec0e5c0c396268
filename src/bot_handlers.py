from __future__ import annotations

import logging
import logging_config  # noqa: F401
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from errors import FetchFailure, ParseFailure, PersistenceFailure
from notification_manager import Messenger
from poller import Poller
from subscription_registry import SubscriptionRegistry

SEARCH_URL_RE = re.compile(r"https://(www\.)?bazaraki\.com/\S*", re.IGNORECASE)
# Sentence punctuation glued to a pasted link is not part of it
URL_TRAILING_PUNCTUATION = ".,;:!?)]}>'\""
REMOVE_CALLBACK_RE = re.compile(r"^remove_subscription_(\d+)$")
BASELINE_WORKERS = 2

PARSE_FAILED_REPLY = "Could not recognize this page. Send a link to a Bazaraki search results page."
FETCH_FAILED_REPLY = "Could not load this search right now, please try again later."
STORE_FAILED_REPLY = "Could not save the subscription, please try again later."


def extract_search_url(text: str) -> str | None:
    """Return the first Bazaraki link in the text, without trailing punctuation."""
    match = SEARCH_URL_RE.search(text)
    if not match:
        return None
    return match.group(0).rstrip(URL_TRAILING_PUNCTUATION)


class CommandHandler:
    """Turns incoming Telegram updates into registry and poller calls."""

    def __init__(
        self,
        poller: Poller,
        registry: SubscriptionRegistry,
        messenger: Messenger,
        baseline_workers: int = BASELINE_WORKERS
    ) -> None:
        self.poller = poller
        self.registry = registry
        self.messenger = messenger
        # Baseline ingestion fetches every page of a search; keep it off the update thread
        self._baseline_executor = ThreadPoolExecutor(
            max_workers=max(1, baseline_workers), thread_name_prefix="Baseline"
        )

    def close(self, wait: bool = True) -> None:
        """Stop accepting new searches; with `wait`, finish the queued ones."""
        self._baseline_executor.shutdown(wait=wait)

    def handle_update(self, update: dict) -> None:
        callback = update.get("callback_query")
        if callback:
            self.handle_callback(callback)
            return
        message = update.get("message") or {}
        text = message.get("text")
        chat_id = message.get("chat", {}).get("id")
        if text and chat_id is not None:
            self.handle_message(chat_id, text)

    def handle_message(self, chat_id, text: str) -> Future | None:
        """
        Answer a chat message. A search link is subscribed in the background
        and the Future of that work is returned; other messages return None.
        """
        command = text.strip().split(maxsplit=1)[0].split("@")[0] if text.strip() else ""
        if command == "/start":
            self.messenger.send_message(chat_id, "Welcome")
        elif command == "/list":
            self.messenger.deliver_subscription_list(chat_id, self.registry.list_for(chat_id))
        else:
            url = extract_search_url(text)
            if url:
                future = self._baseline_executor.submit(self.subscribe, chat_id, url)
                future.add_done_callback(self._log_failure)
                return future
            logging.debug(f"[bot] Ignoring message from {chat_id}")
        return None

    @staticmethod
    def _log_failure(future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logging.error(f"[bot] Subscription request failed: {future.exception()}")

    def subscribe(self, chat_id, url: str) -> bool:
        """
        Run the baseline ingestion for a new search and report the outcome
        to the chat. Returns True if the subscription was stored.
        """
        self.messenger.send_message(chat_id, "Parsing...")
        try:
            count = self.poller.ingest_baseline(chat_id, url)
        except ParseFailure as error:
            logging.warning(f"[bot] Rejected URL from {chat_id}: {error}")
            self.messenger.send_message(chat_id, PARSE_FAILED_REPLY)
            return False
        except FetchFailure as error:
            logging.error(f"[bot] Could not fetch {url} for {chat_id}: {error}")
            self.messenger.send_message(chat_id, FETCH_FAILED_REPLY)
            return False
        except PersistenceFailure as error:
            logging.error(f"[bot] Could not store subscription for {chat_id}: {error}")
            self.messenger.send_message(chat_id, STORE_FAILED_REPLY)
            return False
        self.messenger.send_message(chat_id, f"Ads parsed, subscription added ({count} current ads)")
        return True

    def handle_callback(self, callback: dict) -> None:
        match = REMOVE_CALLBACK_RE.match(callback.get("data") or "")
        chat_id = (callback.get("message") or {}).get("chat", {}).get("id")
        if match and chat_id is not None:
            subscription_id = int(match.group(1))
            owned = {subscription.id for subscription in self.registry.list_for(chat_id)}
            if subscription_id in owned and self.registry.remove(subscription_id):
                self.messenger.send_message(chat_id, "Removed subscription!")
            else:
                self.messenger.send_message(chat_id, "Subscription not found.")
        self.messenger.answer_callback_query(callback.get("id"))


class UpdateListener(threading.Thread):
    """Long-polls Telegram and feeds every update to the command handler."""

    def __init__(self, messenger: Messenger, handler: CommandHandler, poll_timeout: int = 30) -> None:
        super().__init__(name="Telegram-Updates", daemon=True)
        self.messenger = messenger
        self.handler = handler
        self.poll_timeout = poll_timeout
        self._stop_event = threading.Event()
        self._offset: int | None = None

    def stop(self) -> None:
        self._stop_event.set()

    def poll_once(self) -> int:
        """Fetch and dispatch one batch of updates. Returns the batch size."""
        updates = self.messenger.get_updates(offset=self._offset, timeout=self.poll_timeout)
        for update in updates:
            self._offset = update["update_id"] + 1
            try:
                self.handler.handle_update(update)
            except Exception as e:
                logging.error(f"[bot] Failed to handle update {update.get('update_id')}: {e}")
        return len(updates)

    def run(self) -> None:
        logging.info("[bot] Listening for Telegram updates.")
        while not self._stop_event.is_set():
            if not self.poll_once():
                self._stop_event.wait(1)
        logging.info("[bot] Update listener stopped.")
