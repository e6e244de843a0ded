from __future__ import annotations


class StorefrontError(Exception):
    """Base class for every error the storefront reports to its callers."""


class CatalogUnavailable(StorefrontError):
    """The catalog could not be fetched or parsed. No partial catalog is used."""


class OutOfStock(StorefrontError):
    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Product {product_id} is out of stock (requested {requested}, available {available})"
        )


class EmptyCart(StorefrontError):
    def __init__(self, message: str = "Your cart is empty"):
        super().__init__(message)


class StorageCorrupt(StorefrontError):
    """A persisted value failed to parse. Callers treat the key as absent."""

    def __init__(self, key: str, reason: str = ""):
        self.key = key
        super().__init__(f"Stored value for {key!r} is corrupt: {reason}" if reason else f"Stored value for {key!r} is corrupt")


class CheckoutInProgress(StorefrontError):
    def __init__(self, message: str = "Payment is being processed; the cart is locked"):
        super().__init__(message)


class PaymentMethodRequired(StorefrontError):
    def __init__(self, message: str = "Please select a payment method"):
        super().__init__(message)


class ResetNotConfirmed(StorefrontError):
    def __init__(self, message: str = "Stock reset must be confirmed"):
        super().__init__(message)
