from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional

from .cart_store import CartStore
from .errors import CheckoutInProgress, OutOfStock
from .ledger import Ledger, StockLedger, derive_ledger
from .notifier import ChangeNotifier
from .schemas import CartLine, Product

logger = logging.getLogger(__name__)


def _find_line(cart: List[CartLine], product_id: int) -> Optional[CartLine]:
    for line in cart:
        if line.product_id == product_id:
            return line
    return None


class ReservationEngine:
    """Moves units between the stock ledger and the cart.

    Every operation reads both values, computes, writes both back whole and
    then notifies once. The lock makes that sequence atomic inside this
    context. Nothing coordinates separate contexts: two contexts that read
    before either writes can both grant the same unit, and the last write wins.
    """

    def __init__(
        self,
        ledger: StockLedger,
        cart_store: CartStore,
        notifier: ChangeNotifier,
        load_catalog: Optional[Callable[[], Iterable[Product]]] = None,
    ):
        self.ledger = ledger
        self.cart_store = cart_store
        self.notifier = notifier
        self._load_catalog = load_catalog
        self._lock = threading.RLock()
        self._processing = False

    @property
    def processing(self) -> bool:
        return self._processing

    @contextmanager
    def processing_checkout(self) -> Iterator[None]:
        """Hold the cart locked while a payment is pending in this context."""
        with self._lock:
            if self._processing:
                raise CheckoutInProgress()
            self._processing = True
        try:
            yield
        finally:
            with self._lock:
                self._processing = False

    def _ensure_editable(self) -> None:
        if self._processing:
            raise CheckoutInProgress()

    def _current_ledger(self, cart: List[CartLine]) -> Ledger:
        """Read the ledger, rebuilding it from the catalog when absent or corrupt.

        The rebuilt ledger subtracts what the cart already holds, so lines in
        the cart keep their reservations. Raises CatalogUnavailable, before any
        write, when the catalog cannot be loaded.
        """
        ledger = self.ledger.get_ledger()
        if ledger is not None:
            return ledger
        if self._load_catalog is None:
            return {}
        logger.warning("stock ledger missing; rebuilding from catalog and cart")
        return derive_ledger(self._load_catalog(), cart)

    def _commit(self, ledger, cart: List[CartLine]) -> None:
        self.ledger.set_ledger(ledger, notify=False)
        self.cart_store.set_cart(cart, notify=False)
        self.notifier.notify()

    def add_to_cart(self, product: Product, requested_qty: int) -> int:
        """Reserve up to ``requested_qty`` units and return how many were granted."""
        with self._lock:
            self._ensure_editable()
            cart = self.cart_store.get_cart()
            ledger = self._current_ledger(cart)

            # a missing entry falls back to catalog stock
            available = ledger.get(product.id, product.base_stock)
            qty = min(requested_qty, available)
            if qty <= 0:
                raise OutOfStock(product.id, requested_qty, max(available, 0))

            line = _find_line(cart, product.id)
            if line is not None:
                line.quantity += qty
            else:
                cart.append(CartLine.snapshot(product, qty))

            ledger[product.id] = available - qty
            self._commit(ledger, cart)

        if qty < requested_qty:
            logger.info("product %s: requested %d, granted %d", product.id, requested_qty, qty)
        return qty

    def remove_from_cart(self, product_id: int) -> int:
        """Drop the line and return all of its units. Returns the units returned."""
        with self._lock:
            self._ensure_editable()
            cart = self.cart_store.get_cart()
            line = _find_line(cart, product_id)
            if line is None:
                return 0

            ledger = self._current_ledger(cart)
            ledger[product_id] = ledger.get(product_id, 0) + line.quantity
            cart = [l for l in cart if l.product_id != product_id]
            self._commit(ledger, cart)
            return line.quantity

    def update_quantity(self, product_id: int, new_qty: int) -> Optional[CartLine]:
        """Set a line's quantity, never below 1.

        An increase grants whatever is available, up to the request, and only
        fails when nothing at all is available. A decrease always succeeds.
        """
        with self._lock:
            self._ensure_editable()
            cart = self.cart_store.get_cart()
            line = _find_line(cart, product_id)
            if line is None:
                return None

            new_qty = max(1, new_qty)
            diff = new_qty - line.quantity
            if diff == 0:
                return line

            ledger = self._current_ledger(cart)
            if diff > 0:
                available = ledger.get(product_id, 0)
                allowed = min(diff, available)
                if allowed <= 0:
                    raise OutOfStock(product_id, diff, max(available, 0))
                line.quantity += allowed
                ledger[product_id] = available - allowed
            else:
                line.quantity = new_qty
                ledger[product_id] = ledger.get(product_id, 0) - diff

            self._commit(ledger, cart)
            return line

    def reset_stock(self, catalog: Iterable[Product]) -> Ledger:
        """Re-derive the ledger from the catalog minus the live cart.

        Runs under the context lock so no reservation lands between reading
        the cart and writing the ledger.
        """
        with self._lock:
            self._ensure_editable()
            return self.ledger.reset_ledger(catalog, self.cart_store.get_cart())
