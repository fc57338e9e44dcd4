"""Failure kinds surfaced by the reservation ledger and lifecycle.

Every error carries the HTTP status it maps to and a stable ``error`` code so
clients can branch on the kind without parsing messages.
"""

from typing import Any, Dict, List, Optional, Tuple


class ReservationError(Exception):
    status_code = 400
    error = "reservation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error, "message": self.message}
        body.update(self.fields())
        return body


class InvalidToken(ReservationError):
    status_code = 401
    error = "invalid_token"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class Forbidden(ReservationError):
    status_code = 403
    error = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ProfileNotFound(ReservationError):
    error = "profile_not_found"

    def __init__(self, message: str = "Profile not found"):
        super().__init__(message)


class PartNotFound(ReservationError):
    status_code = 404
    error = "part_not_found"

    def __init__(self, part_id: int):
        super().__init__(f"Part {part_id} not found")
        self.part_id = part_id

    def fields(self):
        return {"part_id": self.part_id}


class InvalidQuantity(ReservationError):
    error = "invalid_quantity"

    def __init__(self, part_id: int, quantity: Any):
        super().__init__(f"Invalid quantity {quantity!r} for part {part_id}")
        self.part_id = part_id
        self.quantity = quantity

    def fields(self):
        return {"part_id": self.part_id, "quantity": self.quantity}


class CheckoutLimitExceeded(ReservationError):
    error = "checkout_limit_exceeded"

    def __init__(self, category_id: int, limit: int, requested: int):
        super().__init__(
            f"Checkout limit for category {category_id} is {limit}, requested {requested}"
        )
        self.category_id = category_id
        self.limit = limit
        self.requested = requested

    def fields(self):
        return {"category_id": self.category_id, "limit": self.limit, "requested": self.requested}


class PartialCheckoutError(ReservationError):
    """Base for failures raised after some units of the batch have committed."""

    def __init__(
        self,
        message: str,
        part_id: Optional[int],
        entry_ids: List[int],
        completed_items: List[Tuple[int, int]],
    ):
        super().__init__(message)
        self.part_id = part_id
        self.entry_ids = list(entry_ids)
        self.completed_items = list(completed_items)

    @property
    def units_completed_so_far(self) -> int:
        return len(self.entry_ids)

    def fields(self):
        return {
            "part_id": self.part_id,
            "units_completed_so_far": self.units_completed_so_far,
            "entry_ids": self.entry_ids,
            "completed_items": [
                {"part_id": part_id, "quantity": quantity}
                for part_id, quantity in self.completed_items
            ],
        }


class OutOfStock(PartialCheckoutError):
    status_code = 409
    error = "out_of_stock"

    def __init__(self, part_id: int, entry_ids: List[int], completed_items: List[Tuple[int, int]],
                 part_name: Optional[str] = None):
        label = part_name or f"part {part_id}"
        super().__init__(
            f"Insufficient stock for {label}. Please refresh and try again.",
            part_id, entry_ids, completed_items,
        )


class StoreError(PartialCheckoutError):
    """Storage failure while committing a unit. Units listed as completed are
    durable; the failing unit was rolled back. Not retried automatically."""
    status_code = 503
    error = "store_error"

    def __init__(self, part_id: Optional[int], entry_ids: List[int],
                 completed_items: List[Tuple[int, int]], cause: Optional[BaseException] = None):
        super().__init__(f"Checkout failed: {cause}" if cause else "Checkout failed",
                         part_id, entry_ids, completed_items)
        self.cause = cause


class EntryNotFound(ReservationError):
    status_code = 404
    error = "entry_not_found"

    def __init__(self, entry_id: int):
        super().__init__(f"Reservation {entry_id} not found")
        self.entry_id = entry_id

    def fields(self):
        return {"entry_id": self.entry_id}


class InvalidStatus(ReservationError):
    error = "invalid_status"

    def __init__(self, status: Any):
        super().__init__(f"Invalid reservation status {status!r}")
        self.status = status

    def fields(self):
        return {"status": self.status}


class CategoryNotFound(ReservationError):
    status_code = 404
    error = "category_not_found"

    def __init__(self, category_id: int):
        super().__init__(f"Category {category_id} not found")
        self.category_id = category_id

    def fields(self):
        return {"category_id": self.category_id}
