from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Product(BaseModel):
    """Catalog entry. Field names on the wire follow the catalog file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(..., gt=0)
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    image_url: str = Field("", alias="imageUrl")
    base_stock: int = Field(..., ge=0, alias="stock")
    category: Optional[str] = None


class Catalog(BaseModel):
    products: List[Product]


class CartLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., gt=0, alias="id")
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    image_url: str = Field("", alias="imageUrl")
    quantity: int = Field(..., gt=0)

    @classmethod
    def snapshot(cls, product: Product, quantity: int) -> "CartLine":
        return cls(
            product_id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            image_url=product.image_url,
            quantity=quantity,
        )

    # stored carts keep prices as JSON numbers, like the catalog
    @field_serializer("price", when_used="json")
    def _price_as_number(self, value: Decimal) -> float:
        return float(value)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class CheckoutSummary(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


class Receipt(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    total: Decimal
    method: str
    item_count: int


# HTTP responses

class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    image_url: str
    category: Optional[str] = None
    available: int


class CartLineOut(BaseModel):
    product_id: int
    name: str
    description: str
    price: Decimal
    image_url: str
    quantity: int
    line_total: Decimal


class CartOut(BaseModel):
    items: List[CartLineOut]
    count: int
    summary: CheckoutSummary


class AddToCartOut(BaseModel):
    product_id: int
    requested: int
    added: int
    cart: CartOut
