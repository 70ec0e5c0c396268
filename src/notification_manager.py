from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List

import requests

from config import BOT_TOKEN
from scrapers.base import Ad
from utils import absolute_url, escape_markdown

TELEGRAM_API = "https://api.telegram.org"
CURRENCY_SIGN = "€"


@dataclass(frozen=True)
class Notification:
    title: str
    price_text: str
    image_url: str
    link_url: str


class Messenger:
    """Class used to group the Telegram sending methods of the radar."""

    def __init__(self, token: str | None = None, session: requests.Session | None = None, timeout: int = 30) -> None:
        self.token = token or BOT_TOKEN
        self._session = session
        self._session_local = threading.local()
        self.timeout = timeout

    @staticmethod
    def build_notification(ad: Ad) -> Notification:
        """
        Generates the notification payload for a single ad.

        Args:
            ad (Ad): the ad to announce.

        Returns:
            Notification: title, price, absolute image URL and absolute link.
        """
        return Notification(
            title=ad.name.strip(),
            price_text=f"{ad.price.strip()}{CURRENCY_SIGN}",
            image_url=absolute_url(ad.image),
            link_url=absolute_url(ad.identity),
        )

    @staticmethod
    def format_caption(notification: Notification) -> str:
        """Renders the notification as a MarkdownV2 '[title](link), price' line."""
        link = notification.link_url.replace("\\", "\\\\").replace(")", "\\)")
        return f"[{escape_markdown(notification.title)}]({link}), {escape_markdown(notification.price_text)}"

    def notify(self, chat_id, notification: Notification) -> bool:
        """
        Send one ad notification. The ad photo is sent with the text as its
        caption; ads without a usable photo are sent as a plain message.

        Returns:
            bool: True if Telegram accepted the notification.
        """
        caption = self.format_caption(notification)
        if notification.image_url:
            sent = self._call(
                "sendPhoto",
                chat_id=chat_id,
                photo=notification.image_url,
                caption=caption,
                parse_mode="MarkdownV2",
            )
            if sent is not None:
                return True
            logging.warning(f"[telegram] Photo rejected for {notification.link_url}, sending text only.")
        return self.send_message(chat_id, caption, parse_mode="MarkdownV2")

    def deliver_subscription_list(self, chat_id, subscriptions: Iterable) -> None:
        """Send one message per subscription, each with a 'Remove' button."""
        subscriptions = list(subscriptions)
        if not subscriptions:
            self.send_message(chat_id, "You have no subscriptions yet. Send a Bazaraki search link to add one.")
            return
        for subscription in subscriptions:
            reply_markup = {
                "inline_keyboard": [
                    [{"text": "Remove", "callback_data": f"remove_subscription_{subscription.id}"}],
                ],
            }
            self.send_message(chat_id, subscription.search_url, reply_markup=reply_markup)

    def send_message(self, chat_id, text: str, reply_markup: dict | None = None, parse_mode: str | None = None) -> bool:
        payload = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode is not None:
            payload["parse_mode"] = parse_mode
        return self._call("sendMessage", **payload) is not None

    def answer_callback_query(self, callback_query_id: str) -> None:
        self._call("answerCallbackQuery", callback_query_id=callback_query_id)

    def get_updates(self, offset: int | None = None, timeout: int = 30) -> List[dict]:
        """
        Long-poll Telegram for incoming updates.

        Returns:
            list[dict]: The updates received, or an empty list in case of error.
        """
        payload = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        result = self._call("getUpdates", request_timeout=timeout + 10, **payload)
        return result or []

    def _call(self, method: str, request_timeout: int | None = None, **payload):
        """
        Invoke a Bot API method. Errors are logged and reported as None.
        """
        endpoint = f"{TELEGRAM_API}/bot{self.token}/{method}"
        try:
            response = self._get_session().post(endpoint, json=payload, timeout=request_timeout or self.timeout)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as error:
            logging.error(f"[telegram] Connection error on {method}: {error}")
            return None
        if not data.get("ok"):
            logging.error(f"[telegram] {method} failed: {data.get('description', response.status_code)}")
            return None
        logging.debug(f"[telegram] {method} succeeded")
        return data.get("result", True)

    def _get_session(self) -> requests.Session:
        """One session per thread: the update listener and poller workers send concurrently."""
        if self._session is not None:
            return self._session
        session = getattr(self._session_local, "session", None)
        if session is None:
            session = requests.Session()
            self._session_local.session = session
        return session
