"""
FreshCart - Custom Exceptions
===============================
Business-level exceptions that can be caught and converted to HTTP responses.
Each error carries a machine-readable code plus structured details; building
the final user-facing copy is left to the caller.
"""

import enum
from typing import List, Optional


class ShopError(Exception):
    """Base exception for all business logic errors."""
    code = "SHOP_ERROR"
    status_code = 400

    def __init__(self, message: str = "Something went wrong.", details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class ValidationError(ShopError):
    """Raised for malformed or missing caller input. No mutation is performed."""
    code = "VALIDATION_ERROR"


# ==========================================
# Stock
# ==========================================

class StockError(ShopError):
    """Base for cart problems the customer can fix by editing the cart."""
    code = "STOCK_ERROR"


class InsufficientStock(StockError):
    """Raised when the requested quantity exceeds live stock."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, available: int, product_name: str = ""):
        self.available = available
        self.product_name = product_name or "product"
        super().__init__(
            f"Only {available} of {self.product_name} left in stock",
            details={"available": available, "product_name": self.product_name},
        )


class ProductRemoved(StockError):
    """Raised when a cart entry references a product that no longer exists."""
    code = "PRODUCT_REMOVED"

    def __init__(self, product_name: str = ""):
        self.product_name = product_name or "product"
        super().__init__(
            f"{self.product_name} is no longer available",
            details={"product_name": self.product_name},
        )



# ==========================================
# Lookup / Access
# ==========================================

class NotFoundError(ShopError):
    """Raised when a requested resource doesn't exist."""
    code = "NOT_FOUND"
    status_code = 404


class AuthorizationError(ShopError):
    """Raised when user lacks permission."""
    code = "FORBIDDEN"
    status_code = 403


# ==========================================
# Checkout
# ==========================================

class CheckoutRejection(str, enum.Enum):
    EMPTY_CART = "EMPTY_CART"
    REMOVED_ITEMS = "REMOVED_ITEMS"
    STOCK_ISSUES = "STOCK_ISSUES"


class CheckoutRejected(ShopError):
    """Raised when checkout validation fails. Nothing has been written."""

    _messages = {
        CheckoutRejection.EMPTY_CART: "Cart is empty",
        CheckoutRejection.REMOVED_ITEMS: "Some items were removed from the catalog",
        CheckoutRejection.STOCK_ISSUES: "Some items are out of stock or exceed available quantity",
    }

    def __init__(self, reason: CheckoutRejection, names: Optional[List[str]] = None):
        self.reason = reason
        self.names = list(names or [])
        super().__init__(
            self._messages[reason],
            details={"names": self.names} if self.names else {},
        )

    @property
    def code(self) -> str:
        return self.reason.value


class InfrastructureFailure(ShopError):
    """Raised when the persistence layer fails. Opaque to the customer."""
    code = "INFRASTRUCTURE_FAILURE"
    status_code = 500

    def __init__(self, message: str = "Checkout failed", item_index: Optional[int] = None):
        self.item_index = item_index
        super().__init__(
            message,
            details={"item_index": item_index} if item_index is not None else {},
        )
