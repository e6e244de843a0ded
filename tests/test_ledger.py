import pytest

from storefront.ledger import StockLedger, derive_ledger
from storefront.notifier import ChangeNotifier
from storefront.schemas import CartLine
from storefront.storage import KeyValueStore


@pytest.fixture
def ledger(session_factory):
    return StockLedger(KeyValueStore(session_factory), ChangeNotifier())


def test_absent_is_not_empty(ledger):
    assert ledger.get_ledger() is None
    ledger.set_ledger({})
    assert ledger.get_ledger() == {}


def test_seed_uses_base_stock(ledger, storefront):
    products = storefront.catalog.load_catalog()
    assert ledger.seed_ledger(products) == {1: 5, 2: 3, 3: 0}
    assert ledger.get_ledger() == {1: 5, 2: 3, 3: 0}


def test_ensure_only_seeds_when_absent(ledger, storefront):
    products = storefront.catalog.load_catalog()
    ledger.set_ledger({1: 1})
    assert ledger.ensure_ledger(products) == {1: 1}

    ledger.store.remove_item(ledger.key)
    assert ledger.ensure_ledger(products) == {1: 5, 2: 3, 3: 0}


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '{"x": 1}', '{"1": "five"}', '{"1": true}', '{"1": -2}'])
def test_corrupt_ledger_is_treated_as_absent(ledger, storefront, raw):
    ledger.store.set_item(ledger.key, raw)
    assert ledger.get_ledger() is None
    # first-run recovery re-seeds it
    assert ledger.ensure_ledger(storefront.catalog.load_catalog())[1] == 5


def test_reset_preserves_cart_reservations(ledger, storefront):
    products = storefront.catalog.load_catalog()
    ledger.set_ledger({1: 0, 2: 0, 3: 0})
    cart = [CartLine(id=1, name="Bamboo Toothbrush", price=100, quantity=2)]

    assert ledger.reset_ledger(products, cart)[1] == 3
    assert ledger.get_ledger() == {1: 3, 2: 3, 3: 0}


def test_reset_clamps_and_covers_unknown_products(ledger, storefront):
    products = storefront.catalog.load_catalog()
    cart = [
        CartLine(id=2, name="Beeswax Wraps", price=25, quantity=7),
        CartLine(id=42, name="Discontinued", price=1, quantity=1),
    ]
    result = ledger.reset_ledger(products, cart)
    assert result[2] == 0
    assert result[42] == 0


def test_set_ledger_notifies(ledger):
    calls = []
    ledger.notifier.subscribe(lambda: calls.append(1))
    ledger.set_ledger({1: 2})
    ledger.set_ledger({1: 1}, notify=False)
    assert calls == [1]


def test_derive_subtracts_cart_from_base_stock(storefront):
    products = storefront.catalog.load_catalog()
    cart = [CartLine(id=1, name="Bamboo Toothbrush", price=100, quantity=2)]
    assert derive_ledger(products, cart) == {1: 3, 2: 3, 3: 0}
    assert derive_ledger(products, []) == {1: 5, 2: 3, 3: 0}
