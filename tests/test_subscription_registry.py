URL_A = "https://www.bazaraki.com/real-estate-to-rent/"
URL_B = "https://www.bazaraki.com/car-motorbikes-boats-and-parts/"


def test_add_is_idempotent(registry):
    registry.add(7, URL_A)
    registry.add(7, URL_A)

    subscriptions = registry.list_all()
    assert len(subscriptions) == 1
    assert subscriptions[0].subscriber_id == 7
    assert subscriptions[0].search_url == URL_A


def test_same_url_for_two_subscribers(registry):
    registry.add(1, URL_A)
    registry.add(2, URL_A)
    assert [s.subscriber_id for s in registry.list_all()] == [1, 2]


def test_list_for_returns_only_own_subscriptions_in_order(registry):
    registry.add(1, URL_B)
    registry.add(2, URL_A)
    registry.add(1, URL_A)

    assert [s.search_url for s in registry.list_for(1)] == [URL_B, URL_A]
    assert registry.list_for(3) == []


def test_remove(registry):
    registry.add(1, URL_A)
    registry.add(1, URL_B)
    first = registry.list_for(1)[0]

    assert registry.remove(first.id)
    assert [s.search_url for s in registry.list_for(1)] == [URL_B]
    assert not registry.remove(first.id)
