"""Two contexts sharing one store, the way two browser tabs share storage.

There is no lock between contexts. These tests pin down what is guaranteed
(every write becomes visible and is announced) and what is not (a stale read
followed by a write loses the other context's update).
"""

import threading

from storefront.notifier import StorageWatcher


def test_writes_are_visible_to_other_context(storefront, other_tab, toothbrush):
    storefront.engine.add_to_cart(toothbrush, 2)
    assert other_tab.ledger.get_ledger()[1] == 3
    assert [l.quantity for l in other_tab.cart_store.get_cart()] == [2]


def test_watcher_ignores_own_writes_and_reports_others(storefront, other_tab, toothbrush):
    heard_here, heard_there = [], []
    storefront.notifier.subscribe(lambda: heard_here.append(1))
    other_tab.notifier.subscribe(lambda: heard_there.append(1))

    storefront.watcher.poll_once()
    other_tab.watcher.poll_once()
    heard_here.clear()

    storefront.engine.add_to_cart(toothbrush, 1)
    assert heard_here == [1]

    assert storefront.watcher.poll_once() is False
    assert other_tab.watcher.poll_once() is True
    assert heard_there == [1]
    assert heard_here == [1]

    # nothing new since the last poll
    assert other_tab.watcher.poll_once() is False


def test_listener_rereads_fresh_state_after_remote_change(storefront, other_tab, toothbrush):
    shown = {}

    def render():
        shown["stock"] = other_tab.available_stock(toothbrush)

    other_tab.notifier.subscribe(render)
    other_tab.watcher.poll_once()

    storefront.engine.add_to_cart(toothbrush, 4)
    other_tab.watcher.poll_once()
    assert shown["stock"] == 1


def test_background_watcher_delivers_remote_changes(storefront, other_tab, toothbrush):
    heard = threading.Event()
    other_tab.notifier.subscribe(heard.set)
    watcher = StorageWatcher(other_tab.store, other_tab.notifier, interval=0.05)
    watcher.start()
    try:
        storefront.engine.add_to_cart(toothbrush, 1)
        assert heard.wait(timeout=5)
    finally:
        watcher.stop()


def test_stale_read_loses_update(storefront, other_tab, toothbrush, wraps, monkeypatch):
    # other_tab read the ledger before storefront's write landed
    stale_ledger = other_tab.ledger.get_ledger()
    storefront.engine.add_to_cart(toothbrush, 3)

    monkeypatch.setattr(other_tab.ledger, "get_ledger", lambda: dict(stale_ledger))
    other_tab.engine.add_to_cart(wraps, 1)
    monkeypatch.undo()

    ledger = storefront.ledger.get_ledger()
    in_cart = {l.product_id: l.quantity for l in storefront.cart_store.get_cart()}
    # last writer wins: the toothbrush reservation is in the cart but its
    # debit was overwritten, so the ledger over-promises
    assert in_cart == {1: 3, 2: 1}
    assert ledger[1] == 5
    assert ledger[1] + in_cart[1] > toothbrush.base_stock


def test_reset_recovers_from_drift(storefront, other_tab, toothbrush):
    storefront.engine.add_to_cart(toothbrush, 2)
    storefront.ledger.set_ledger({1: 0, 2: 0, 3: 0})

    other_tab.reset_stock(confirmed=True)

    assert storefront.ledger.get_ledger()[1] == 3
    assert storefront.ledger.get_ledger()[2] == 3


def test_reset_waits_for_in_flight_reservation(storefront, toothbrush, monkeypatch):
    read_cart = storefront.cart_store.get_cart
    worker = {}

    def get_cart_and_race():
        if "thread" not in worker:
            # an add arriving from another thread while reset holds the cart
            t = threading.Thread(target=storefront.engine.add_to_cart, args=(toothbrush, 2))
            worker["thread"] = t
            t.start()
            t.join(timeout=0.2)
            worker["finished_during_reset"] = not t.is_alive()
        return read_cart()

    monkeypatch.setattr(storefront.cart_store, "get_cart", get_cart_and_race)
    storefront.reset_stock(confirmed=True)
    worker["thread"].join(timeout=5)
    monkeypatch.undo()

    assert worker["finished_during_reset"] is False
    ledger = storefront.ledger.get_ledger()
    in_cart = {l.product_id: l.quantity for l in storefront.cart_store.get_cart()}
    assert in_cart == {1: 2}
    assert ledger[1] + in_cart[1] == toothbrush.base_stock
