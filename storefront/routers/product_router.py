from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..context import StorefrontContext, get_storefront
from ..errors import CatalogUnavailable
from ..schemas import Product, ProductOut

router = APIRouter(prefix="/products", tags=["Products"])


def _product_out(product: Product, available: int) -> ProductOut:
    return ProductOut(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        image_url=product.image_url,
        category=product.category,
        available=available,
    )


@router.get("/", response_model=list[ProductOut])
def list_products(
    category: Optional[List[str]] = Query(None, description="**Category** filter, repeatable"),
    min_price: Optional[Decimal] = Query(None, ge=0, description="**Minimum price** (inclusive)"),
    max_price: Optional[Decimal] = Query(None, ge=0, description="**Maximum price** (inclusive)"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        rows = storefront.list_products(categories=category, min_price=min_price, max_price=max_price)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return [_product_out(p, available) for p, available in rows]


@router.get("/{product_id}", response_model=ProductOut)
def view_product(
    product_id: int,
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        product = storefront.get_product(product_id)
    except CatalogUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return _product_out(product, storefront.available_stock(product))
