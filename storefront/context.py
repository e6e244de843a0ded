from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

from . import config
from .cart_store import CartStore
from .catalog import CatalogLoader, filter_products, find_product
from .checkout import CheckoutService
from .database import make_session_factory
from .errors import ResetNotConfirmed
from .ledger import Ledger, StockLedger
from .messaging import BrokerRelay
from .notifier import ChangeNotifier, StorageWatcher
from .reservations import ReservationEngine
from .schemas import CartLine, Product
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


class StorefrontContext:
    """One execution context: the storefront as seen from a single tab.

    Contexts built on the same database share the ledger and the cart.
    """

    def __init__(
        self,
        session_factory,
        catalog_loader: Optional[CatalogLoader] = None,
        *,
        context_id: Optional[str] = None,
        shipping_fee: Decimal = config.SHIPPING_FEE,
        checkout_delay: float = config.CHECKOUT_DELAY_SECONDS,
        poll_interval: float = config.STORAGE_POLL_INTERVAL,
        broker_url: str = config.RABBITMQ_URL,
        sleep=None,
    ):
        self.store = KeyValueStore(session_factory, context_id=context_id)
        self.notifier = ChangeNotifier()
        self.catalog = catalog_loader or CatalogLoader()
        self.ledger = StockLedger(self.store, self.notifier)
        self.cart_store = CartStore(self.store, self.notifier)
        # late-bound so a swapped loader is picked up
        self.engine = ReservationEngine(
            self.ledger,
            self.cart_store,
            self.notifier,
            load_catalog=lambda: self.catalog.load_catalog(),
        )

        checkout_kwargs = {}
        if sleep is not None:
            checkout_kwargs["sleep"] = sleep
        self.checkout = CheckoutService(
            self.engine,
            self.cart_store,
            shipping_fee=shipping_fee,
            delay_seconds=checkout_delay,
            **checkout_kwargs,
        )

        self.watcher = StorageWatcher(self.store, self.notifier, interval=poll_interval)
        self.relay = BrokerRelay(self.notifier, self.store.context_id, url=broker_url) if broker_url else None

    @property
    def context_id(self) -> str:
        return self.store.context_id

    def initialize(self) -> List[CartLine]:
        """First-run setup: load the catalog, seed the ledger if absent, load the cart."""
        products = self.catalog.load_catalog()
        self.ledger.ensure_ledger(products)
        return self.cart_store.get_cart()

    def start(self, watch: bool = config.STORAGE_WATCH_ENABLED) -> None:
        if watch:
            self.watcher.start()
        if self.relay is not None:
            self.relay.start()
        logger.info("storefront context %s started", self.context_id[:8])

    def stop(self) -> None:
        self.watcher.stop()
        if self.relay is not None:
            self.relay.stop()

    def get_product(self, product_id: int) -> Optional[Product]:
        return find_product(self.catalog.load_catalog(), product_id)

    def available_stock(self, product: Product, ledger: Optional[Ledger] = None) -> int:
        if ledger is None:
            ledger = self.ledger.get_ledger() or {}
        return ledger.get(product.id, product.base_stock)

    def list_products(
        self,
        categories: Optional[Iterable[str]] = None,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
    ) -> List[Tuple[Product, int]]:
        products = filter_products(self.catalog.load_catalog(), categories, min_price, max_price)
        ledger = self.ledger.get_ledger() or {}
        return [(p, self.available_stock(p, ledger)) for p in products]

    def reset_stock(self, confirmed: bool) -> Ledger:
        if not confirmed:
            raise ResetNotConfirmed()
        products = self.catalog.load_catalog(refresh=True)
        return self.engine.reset_stock(products)


@lru_cache(maxsize=1)
def get_storefront() -> StorefrontContext:
    return StorefrontContext(make_session_factory(config.DATABASE_URL))
