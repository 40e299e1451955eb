"""Exceptions raised by the pricing engine and its data layer."""
from typing import Optional


class PricingError(Exception):
    """Base exception for all pricing errors."""

    def __init__(self, message: str = "Pricing failed", status_code: int = 500, payload: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self) -> dict:
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['error'] = type(self).__name__
        return rv


class InvalidCartError(PricingError):
    """Raised when the cart itself is malformed (empty, bad quantity...)."""

    def __init__(self, message: str, payload: Optional[dict] = None):
        super().__init__(message, 400, payload)


class ProductNotFoundError(PricingError):
    """Raised when a cart line references a product absent from the catalog."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product '{product_id}' not found in catalog",
            404,
            {'product_id': product_id},
        )


class PriceLevelNotFoundError(PricingError):
    """Raised when an explicit price level is unknown."""

    def __init__(self, price_level_id: str):
        self.price_level_id = price_level_id
        super().__init__(
            f"Price level '{price_level_id}' not found",
            404,
            {'price_level_id': price_level_id},
        )


class InsufficientStockError(PricingError):
    """Raised when a requested quantity exceeds available stock."""

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_id}: requested {requested}, available {available}",
            409,
            {'product_id': product_id, 'requested': requested, 'available': available},
        )


class ProductInactiveError(PricingError):
    """Raised when a cart line references a deactivated product."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product '{product_id}' is not active",
            409,
            {'product_id': product_id},
        )


class InvalidDiscountRuleError(PricingError):
    """
    A discount rule whose data is out of range.

    Never escapes a pricing call: the matcher logs it and skips the rule.
    """

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(
            f"Discount rule '{rule_id}' is invalid: {reason}",
            422,
            {'rule_id': rule_id, 'reason': reason},
        )


class DataLoadError(PricingError):
    """Raised when a data file cannot be turned into model objects."""

    def __init__(self, message: str):
        super().__init__(message, 500)
