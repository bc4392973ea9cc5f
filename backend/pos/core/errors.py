"""
pos/core/errors.py - Error taxonomy for the cart, payment and checkout layers.

Every error carries a stable `code` and the HTTP status the API reports it with.
Validation errors block the requested transition; `PersistenceFailure` is retryable.
"""
from typing import Any, Dict, List, Optional


class PosError(Exception):
    code = "pos_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "retryable": self.retryable}


# ---------- checkout validation ----------

class EmptyCartError(PosError):
    code = "empty_cart"
    status_code = 409

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStockError(PosError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, item_id: str, name: str, requested: int, available: int):
        super().__init__(f"Insufficient stock for {name}: {requested} requested, {available} available")
        self.item_id = item_id
        self.name = name
        self.requested = requested
        self.available = available

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(item_id=self.item_id, requested=self.requested, available=self.available)
        return data


class OutOfStockError(PosError):
    code = "out_of_stock"
    status_code = 409

    def __init__(self, item_id: str, name: str):
        super().__init__(f"{name} is currently out of stock")
        self.item_id = item_id


class CheckoutValidationError(PosError):
    """All checkout violations found at once."""
    code = "checkout_invalid"
    status_code = 409

    def __init__(self, errors: List[PosError]):
        super().__init__("; ".join(e.message for e in errors))
        self.errors = list(errors)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data


# ---------- caller policy ----------

class InvalidDiscountError(PosError):
    code = "invalid_discount"
    status_code = 422


class InvalidTenderError(PosError):
    code = "invalid_tender"
    status_code = 422


# ---------- payment ----------

class IndexOutOfRangeError(PosError, IndexError):
    code = "tender_index_out_of_range"
    status_code = 404

    def __init__(self, index: int, size: int):
        super().__init__(f"No tender at position {index} (have {size})")
        self.index = index


class IncompletePaymentError(PosError):
    code = "incomplete_payment"
    status_code = 409

    def __init__(self, remaining: Optional[Any] = None):
        msg = "Please complete the payment before processing"
        if remaining is not None:
            msg = f"{msg} (remaining {remaining})"
        super().__init__(msg)
        self.remaining = remaining


class PaymentFinalizedError(PosError):
    code = "payment_finalized"
    status_code = 409

    def __init__(self, message: str = "Payment already finalized; start a new sale"):
        super().__init__(message)


class CartLockedError(PosError):
    code = "cart_locked"
    status_code = 423

    def __init__(self, message: str = "Sale is being finalized; try again in a moment"):
        super().__init__(message)


# ---------- collaborators ----------

class ItemNotFoundError(PosError):
    code = "item_not_found"
    status_code = 404

    def __init__(self, key: str):
        super().__init__(f"Item not found: {key}")
        self.key = key


class PersistenceFailure(PosError):
    code = "persistence_failure"
    status_code = 503
    retryable = True
