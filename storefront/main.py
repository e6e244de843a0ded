import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_LEVEL
from .context import get_storefront
from .errors import CatalogUnavailable
from .routers import cart_router, product_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("storefront")

app = FastAPI(
    title="Storefront",
    description="Catalog, cart and stock reservations shared across sessions",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(product_router.router)
app.include_router(cart_router.router)


@app.on_event("startup")
def _startup() -> None:
    storefront = get_storefront()
    try:
        storefront.initialize()
    except CatalogUnavailable:
        # product pages answer 503 until the catalog comes back
        logger.exception("catalog unavailable at startup; stock ledger not seeded")
    storefront.start()


@app.on_event("shutdown")
def _shutdown() -> None:
    get_storefront().stop()


@app.get("/")
def root():
    return {
        "service": "Storefront",
        "status": "running",
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": "storefront",
    }
