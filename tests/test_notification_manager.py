import threading

import requests

from fakes import FakeResponse
from notification_manager import Messenger, Notification
from scrapers.base import Ad
from subscription_registry import Subscription


class FakeTelegramSession:
    def __init__(self, rejected=()):
        self.rejected = set(rejected)
        self.calls = []

    def post(self, endpoint, json=None, timeout=None):
        method = endpoint.rsplit("/", 1)[-1]
        self.calls.append((method, json))
        if method in self.rejected:
            return FakeResponse(400, payload={"ok": False, "description": "Bad Request"})
        return FakeResponse(200, payload={"ok": True, "result": {"message_id": len(self.calls)}})


class BrokenSession:
    def post(self, endpoint, json=None, timeout=None):
        raise requests.ConnectionError("network unreachable")


def test_build_notification_resolves_links():
    ad = Ad("/adv/123_iphone-13/", " iPhone 13 ", "450.00", "//cdn.bazaraki.com/1.jpg", "Today")
    assert Messenger.build_notification(ad) == Notification(
        title="iPhone 13",
        price_text="450.00€",
        image_url="https://cdn.bazaraki.com/1.jpg",
        link_url="https://www.bazaraki.com/adv/123_iphone-13/",
    )


def test_format_caption_escapes_markdown():
    notification = Notification("Sofa - 3 seats (grey)", "1.50€", "", "https://www.bazaraki.com/adv/1_sofa/")
    assert Messenger.format_caption(notification) == (
        r"[Sofa \- 3 seats \(grey\)](https://www.bazaraki.com/adv/1_sofa/), 1\.50€"
    )


def test_notify_sends_photo_with_caption():
    session = FakeTelegramSession()
    messenger = Messenger("token", session=session)

    assert messenger.notify(11, Notification("Bike", "80€", "https://img/1.jpg", "https://www.bazaraki.com/adv/1/"))
    method, payload = session.calls[0]
    assert method == "sendPhoto"
    assert payload["chat_id"] == 11
    assert payload["photo"] == "https://img/1.jpg"
    assert payload["parse_mode"] == "MarkdownV2"


def test_notify_falls_back_to_text_when_photo_is_rejected():
    session = FakeTelegramSession(rejected={"sendPhoto"})
    messenger = Messenger("token", session=session)

    assert messenger.notify(11, Notification("Bike", "80€", "https://img/1.jpg", "https://www.bazaraki.com/adv/1/"))
    assert [method for method, _ in session.calls] == ["sendPhoto", "sendMessage"]


def test_notify_without_image_sends_text():
    session = FakeTelegramSession()
    Messenger("token", session=session).notify(11, Notification("Bike", "80€", "", "https://www.bazaraki.com/adv/1/"))
    assert [method for method, _ in session.calls] == ["sendMessage"]


def test_connection_errors_are_reported_not_raised():
    messenger = Messenger("token", session=BrokenSession())
    assert not messenger.send_message(1, "hello")
    assert messenger.get_updates() == []


def test_deliver_subscription_list_adds_remove_buttons():
    session = FakeTelegramSession()
    subscriptions = [Subscription(3, 11, "https://www.bazaraki.com/a/"), Subscription(8, 11, "https://www.bazaraki.com/b/")]

    Messenger("token", session=session).deliver_subscription_list(11, subscriptions)

    texts = [payload["text"] for _, payload in session.calls]
    buttons = [payload["reply_markup"]["inline_keyboard"][0][0]["callback_data"] for _, payload in session.calls]
    assert texts == ["https://www.bazaraki.com/a/", "https://www.bazaraki.com/b/"]
    assert buttons == ["remove_subscription_3", "remove_subscription_8"]


def test_each_thread_gets_its_own_session():
    messenger = Messenger("token")
    sessions = []
    first = messenger._get_session()
    assert messenger._get_session() is first

    worker = threading.Thread(target=lambda: sessions.append(messenger._get_session()))
    worker.start()
    worker.join()

    assert isinstance(sessions[0], requests.Session)
    assert sessions[0] is not first
