from __future__ import annotations

import logging
from typing import Iterable, List

from pydantic import ValidationError

from .config import CART_KEY
from .errors import StorageCorrupt
from .notifier import ChangeNotifier
from .schemas import CartLine
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


def cart_count(lines: Iterable[CartLine]) -> int:
    return sum(line.quantity for line in lines)


class CartStore:
    """Persisted cart lines. Pure storage: quantity rules live in the engine."""

    def __init__(self, store: KeyValueStore, notifier: ChangeNotifier, key: str = CART_KEY):
        self.store = store
        self.notifier = notifier
        self.key = key

    def get_cart(self) -> List[CartLine]:
        try:
            raw = self.store.get_json(self.key)
            if raw is None:
                return []
            if not isinstance(raw, list):
                raise StorageCorrupt(self.key, "expected an array")
            try:
                return [CartLine.model_validate(item) for item in raw]
            except ValidationError as e:
                raise StorageCorrupt(self.key, str(e)) from e
        except StorageCorrupt as e:
            logger.warning("%s; treating cart as empty", e)
            return []

    def set_cart(self, lines: Iterable[CartLine], notify: bool = True) -> None:
        payload = [line.model_dump(mode="json", by_alias=True) for line in lines]
        self.store.set_json(self.key, payload)
        if notify:
            self.notifier.notify()
