from __future__ import annotations

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


BASE_DIR = os.path.dirname(os.path.abspath(__file__))

DATABASE_URL = os.getenv("STOREFRONT_DATABASE_URL", "sqlite:///./storefront.db")

# Either an http(s) URL or a path to a local JSON file
CATALOG_SOURCE = os.getenv("CATALOG_SOURCE", os.path.join(BASE_DIR, "data", "product-list.json"))
CATALOG_TIMEOUT = float(os.getenv("CATALOG_TIMEOUT", "5"))

SHIPPING_FEE = Decimal(os.getenv("SHIPPING_FEE", "50"))
CHECKOUT_DELAY_SECONDS = float(os.getenv("CHECKOUT_DELAY_SECONDS", "2"))

STORAGE_POLL_INTERVAL = float(os.getenv("STORAGE_POLL_INTERVAL", "1.0"))
STORAGE_WATCH_ENABLED = _bool_env("STORAGE_WATCH_ENABLED", True)

LEDGER_KEY = os.getenv("LEDGER_KEY", "productStocks")
CART_KEY = os.getenv("CART_KEY", "ecommerceCart")

# Empty disables the broker relay
RABBITMQ_URL = os.getenv("RABBITMQ_URL", "").strip()
EVENTS_EXCHANGE = os.getenv("EVENTS_EXCHANGE", "storefront.events")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
