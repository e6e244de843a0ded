from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from .config import LEDGER_KEY
from .errors import StorageCorrupt
from .notifier import ChangeNotifier
from .schemas import CartLine, Product
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

Ledger = Dict[int, int]


def _decode(raw, key: str) -> Ledger:
    if not isinstance(raw, dict):
        raise StorageCorrupt(key, "expected an object")
    ledger: Ledger = {}
    for pid, units in raw.items():
        try:
            pid_int = int(pid)
        except (TypeError, ValueError):
            raise StorageCorrupt(key, f"bad product id {pid!r}")
        if isinstance(units, bool) or not isinstance(units, int):
            raise StorageCorrupt(key, f"bad stock value for {pid!r}")
        if units < 0:
            raise StorageCorrupt(key, f"negative stock for {pid!r}")
        ledger[pid_int] = units
    return ledger


def derive_ledger(catalog: Iterable[Product], cart: Iterable[CartLine]) -> Ledger:
    """Base stock minus what the cart holds, clamped at zero."""
    ledger = {p.id: p.base_stock for p in catalog}
    for line in cart:
        base = ledger.get(line.product_id, 0)
        ledger[line.product_id] = max(0, base - line.quantity)
    return ledger


class StockLedger:
    """Remaining units per product, persisted under one key.

    Only whole-map writes are exposed. Callers read, modify and write the whole
    ledger, which is what keeps a mutation atomic inside one context.
    """

    def __init__(self, store: KeyValueStore, notifier: ChangeNotifier, key: str = LEDGER_KEY):
        self.store = store
        self.notifier = notifier
        self.key = key

    def get_ledger(self) -> Optional[Ledger]:
        """Return the stored ledger, or None when absent or unreadable."""
        try:
            raw = self.store.get_json(self.key)
            if raw is None:
                return None
            return _decode(raw, self.key)
        except StorageCorrupt as e:
            logger.warning("%s; treating ledger as absent", e)
            return None

    def set_ledger(self, ledger: Ledger, notify: bool = True) -> None:
        self.store.set_json(self.key, {str(pid): int(units) for pid, units in ledger.items()})
        if notify:
            self.notifier.notify()

    def seed_ledger(self, catalog: Iterable[Product]) -> Ledger:
        ledger = {p.id: p.base_stock for p in catalog}
        self.set_ledger(ledger)
        logger.info("seeded stock ledger with %d products", len(ledger))
        return ledger

    def ensure_ledger(self, catalog: Iterable[Product]) -> Ledger:
        ledger = self.get_ledger()
        if ledger is None:
            return self.seed_ledger(catalog)
        return ledger

    def reset_ledger(self, catalog: Iterable[Product], current_cart: Iterable[CartLine]) -> Ledger:
        """Re-derive remaining stock as base stock minus what the live cart holds.

        Other contexts may hold a different ledger; this overwrites it.
        """
        ledger = derive_ledger(catalog, current_cart)
        self.set_ledger(ledger)
        logger.warning("stock ledger reset from catalog (%d products)", len(ledger))
        return ledger
