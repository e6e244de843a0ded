"""Shared pytest fixtures for storefront tests.

Each test gets its own SQLite file; contexts built on the same file behave
like browser tabs sharing one storage area.
"""

import json
from decimal import Decimal

import pytest

from storefront.catalog import CatalogLoader
from storefront.context import StorefrontContext
from storefront.database import make_session_factory
from storefront.schemas import Product


CATALOG = {
    "products": [
        {"id": 1, "name": "Bamboo Toothbrush", "description": "Soft bristles", "price": 100,
         "imageUrl": "img/1.jpg", "stock": 5, "category": "Oral Care"},
        {"id": 2, "name": "Beeswax Wraps", "description": "Set of three", "price": 25.5,
         "imageUrl": "img/2.jpg", "stock": 3, "category": "Kitchen"},
        {"id": 3, "name": "Shampoo Bar", "description": "Sulfate free", "price": 300,
         "imageUrl": "img/3.jpg", "stock": 0, "category": "Bath"},
    ]
}


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "product-list.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return path


@pytest.fixture
def session_factory(tmp_path):
    return make_session_factory(f"sqlite:///{tmp_path / 'storage.db'}")


def _context(session_factory, catalog_file):
    return StorefrontContext(
        session_factory,
        CatalogLoader(str(catalog_file)),
        shipping_fee=Decimal("50"),
        checkout_delay=0,
        broker_url="",
        sleep=lambda seconds: None,
    )


@pytest.fixture
def storefront(session_factory, catalog_file):
    ctx = _context(session_factory, catalog_file)
    ctx.initialize()
    yield ctx
    ctx.stop()


@pytest.fixture
def other_tab(storefront, session_factory, catalog_file):
    """A second context sharing the first one's storage."""
    ctx = _context(session_factory, catalog_file)
    ctx.initialize()
    yield ctx
    ctx.stop()


@pytest.fixture
def toothbrush(storefront):
    return storefront.get_product(1)


@pytest.fixture
def wraps(storefront):
    return storefront.get_product(2)


@pytest.fixture
def shampoo(storefront):
    return storefront.get_product(3)


@pytest.fixture
def loose_product():
    """A product the seeded ledger has never heard of."""
    return Product(id=99, name="Soap Nuts", description="", price=Decimal("10"), imageUrl="", stock=4)
