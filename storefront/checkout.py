from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Callable, Iterable, Optional

from .cart_store import CartStore, cart_count
from .config import CHECKOUT_DELAY_SECONDS, SHIPPING_FEE
from .errors import EmptyCart, PaymentMethodRequired
from .reservations import ReservationEngine
from .schemas import CartLine, CheckoutSummary, Receipt

logger = logging.getLogger(__name__)


def summarize(lines: Iterable[CartLine], shipping_fee: Decimal = SHIPPING_FEE) -> CheckoutSummary:
    lines = list(lines)
    subtotal = sum((line.line_total for line in lines), Decimal("0"))
    shipping = Decimal(shipping_fee) if lines else Decimal("0")
    return CheckoutSummary(subtotal=subtotal, shipping=shipping, total=subtotal + shipping)


class CheckoutService:
    """Simulated checkout.

    Paying clears the cart and leaves the ledger alone: units debited when they
    were added to the cart are consumed, not returned.
    """

    def __init__(
        self,
        engine: ReservationEngine,
        cart_store: CartStore,
        shipping_fee: Decimal = SHIPPING_FEE,
        delay_seconds: float = CHECKOUT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine = engine
        self.cart_store = cart_store
        self.shipping_fee = Decimal(shipping_fee)
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def summary(self) -> CheckoutSummary:
        return summarize(self.cart_store.get_cart(), self.shipping_fee)

    def checkout(self, payment_method: Optional[str]) -> Receipt:
        cart = self.cart_store.get_cart()
        if not cart:
            raise EmptyCart()
        method = (payment_method or "").strip()
        if not method:
            raise PaymentMethodRequired()

        with self.engine.processing_checkout():
            logger.info("processing payment via %s", method)
            self._sleep(self.delay_seconds)

            # re-read: another context may have written while we waited
            cart = self.cart_store.get_cart()
            if not cart:
                raise EmptyCart("The cart was emptied while the payment was processing")
            totals = summarize(cart, self.shipping_fee)
            item_count = cart_count(cart)
            self.cart_store.set_cart([])

        logger.info("payment via %s succeeded total=%s items=%d", method, totals.total, item_count)
        return Receipt(
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            total=totals.total,
            method=method,
            item_count=item_count,
        )
