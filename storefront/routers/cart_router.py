from fastapi import APIRouter, Depends, Form, HTTPException, status

from ..cart_store import cart_count
from ..checkout import summarize
from ..context import StorefrontContext, get_storefront
from ..errors import (
    CatalogUnavailable,
    CheckoutInProgress,
    EmptyCart,
    OutOfStock,
    PaymentMethodRequired,
    ResetNotConfirmed,
)
from ..schemas import AddToCartOut, CartLineOut, CartOut, Receipt

router = APIRouter(tags=["Cart"])


def _cart_out(storefront: StorefrontContext) -> CartOut:
    # always re-read: another context may have written since the last request
    lines = storefront.cart_store.get_cart()
    return CartOut(
        items=[
            CartLineOut(
                product_id=line.product_id,
                name=line.name,
                description=line.description,
                price=line.price,
                image_url=line.image_url,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in lines
        ],
        count=cart_count(lines),
        summary=summarize(lines, storefront.checkout.shipping_fee),
    )


def _out_of_stock(e: OutOfStock) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={
            "error": "out_of_stock",
            "product_id": e.product_id,
            "requested": e.requested,
            "available": e.available,
        },
    )


def _locked(e: CheckoutInProgress) -> HTTPException:
    return HTTPException(status_code=status.HTTP_423_LOCKED, detail=str(e))


def _unavailable(e: CatalogUnavailable) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/cart", response_model=CartOut)
def view_cart(storefront: StorefrontContext = Depends(get_storefront)):
    return _cart_out(storefront)


@router.post("/cart/items", response_model=AddToCartOut)
def add_cart_item(
    product_id: int = Form(..., gt=0, description="Product ID"),
    quantity: int = Form(1, gt=0, description="Requested quantity"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    """Reserve units of a product. ``added`` may be lower than ``requested``."""
    try:
        product = storefront.get_product(product_id)
    except CatalogUnavailable as e:
        raise _unavailable(e)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    try:
        added = storefront.engine.add_to_cart(product, quantity)
    except OutOfStock as e:
        raise _out_of_stock(e)
    except CheckoutInProgress as e:
        raise _locked(e)
    except CatalogUnavailable as e:
        raise _unavailable(e)

    return AddToCartOut(product_id=product_id, requested=quantity, added=added, cart=_cart_out(storefront))


@router.put("/cart/item", response_model=CartOut)
def edit_cart_item(
    product_id: int = Form(..., gt=0, description="Product ID"),
    quantity: int = Form(..., description="New quantity (values below 1 become 1)"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        line = storefront.engine.update_quantity(product_id, quantity)
    except OutOfStock as e:
        raise _out_of_stock(e)
    except CheckoutInProgress as e:
        raise _locked(e)
    except CatalogUnavailable as e:
        raise _unavailable(e)
    if line is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="This product is not in your cart")
    return _cart_out(storefront)


@router.delete("/cart/item", response_model=CartOut)
def delete_cart_item(
    product_id: int = Form(..., gt=0, description="Product ID"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        storefront.engine.remove_from_cart(product_id)
    except CheckoutInProgress as e:
        raise _locked(e)
    except CatalogUnavailable as e:
        raise _unavailable(e)
    return _cart_out(storefront)


@router.post("/cart/checkout", response_model=Receipt)
def checkout_cart(
    payment_method: str = Form("", description="Payment method"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        return storefront.checkout.checkout(payment_method)
    except (EmptyCart, PaymentMethodRequired) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CheckoutInProgress as e:
        raise _locked(e)


@router.post("/stock/reset")
def reset_stock(
    confirm: bool = Form(False, description="Must be true: overwrites stock seen by every open session"),
    storefront: StorefrontContext = Depends(get_storefront),
):
    try:
        ledger = storefront.reset_stock(confirmed=confirm)
    except ResetNotConfirmed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except CheckoutInProgress as e:
        raise _locked(e)
    except CatalogUnavailable as e:
        raise _unavailable(e)
    return {"status": "reset", "stock": {str(pid): units for pid, units in ledger.items()}}
