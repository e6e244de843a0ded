from __future__ import annotations

import json
import logging
import threading
from decimal import Decimal
from typing import Iterable, List, Optional

import requests
from pydantic import ValidationError

from .config import CATALOG_SOURCE, CATALOG_TIMEOUT
from .errors import CatalogUnavailable
from .schemas import Catalog, Product

logger = logging.getLogger(__name__)


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


class CatalogLoader:
    """Fetches the static product catalog once per context and caches it.

    The loader never touches the ledger or the cart; callers decide whether to
    seed from what it returns.
    """

    def __init__(self, source: str = CATALOG_SOURCE, timeout: float = CATALOG_TIMEOUT):
        self.source = source
        self.timeout = timeout
        self._products: Optional[List[Product]] = None
        self._lock = threading.Lock()

    def load_catalog(self, refresh: bool = False) -> List[Product]:
        with self._lock:
            if self._products is None or refresh:
                self._products = self._fetch()
            return list(self._products)

    def _fetch(self) -> List[Product]:
        try:
            data = self._read_document()
            products = Catalog.model_validate(data).products
        except CatalogUnavailable:
            raise
        except (ValueError, ValidationError) as e:
            logger.error("catalog %s could not be parsed: %s", self.source, e)
            raise CatalogUnavailable(f"Catalog could not be parsed: {e}") from e

        seen = set()
        for p in products:
            if p.id in seen:
                raise CatalogUnavailable(f"Catalog lists product {p.id} more than once")
            seen.add(p.id)

        logger.info("loaded %d products from %s", len(products), self.source)
        return products

    def _read_document(self):
        if _is_url(self.source):
            try:
                resp = requests.get(self.source, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logger.error("catalog %s is unreachable: %s", self.source, e)
                raise CatalogUnavailable(f"Catalog is unavailable: {e}") from e
            if resp.status_code != 200:
                raise CatalogUnavailable(f"Catalog request failed with status {resp.status_code}")
            return resp.json()

        try:
            with open(self.source, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except OSError as e:
            logger.error("catalog file %s cannot be read: %s", self.source, e)
            raise CatalogUnavailable(f"Catalog file cannot be read: {e}") from e


def find_product(products: Iterable[Product], product_id: int) -> Optional[Product]:
    for p in products:
        if p.id == product_id:
            return p
    return None


def filter_products(
    products: Iterable[Product],
    categories: Optional[Iterable[str]] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
) -> List[Product]:
    """Category and inclusive price-range filter.

    No selected category means every category matches.
    """
    selected = set(categories or [])
    low = Decimal(min_price) if min_price is not None else Decimal(0)
    result = []
    for p in products:
        if selected and p.category not in selected:
            continue
        if p.price < low:
            continue
        if max_price is not None and p.price > Decimal(max_price):
            continue
        result.append(p)
    return result
