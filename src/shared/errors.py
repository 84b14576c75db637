"""Domain error taxonomy shared by the ordering core and its collaborators.

Rule violations follow the Protean convention: they are ``ValidationError``
subclasses carrying a field -> messages dict, so callers can surface
field-level detail. Authorization, authenticity and key-collision failures are
plain exceptions because they have no field to point at.

``NotFound`` is Protean's ``ObjectNotFoundError`` so that repository lookups
and capability lookups raise the same type.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError

NotFound = ObjectNotFoundError

__all__ = [
    "DuplicateKey",
    "Forbidden",
    "InsufficientStock",
    "InvalidTransition",
    "NotFound",
    "SignatureMismatch",
    "ValidationError",
]


class InsufficientStock(ValidationError):
    """Requested quantity exceeds the stock available at decrement time."""

    def __init__(self, product_id: str, requested: int, available: int, name: str | None = None) -> None:
        self.product_id = str(product_id)
        self.requested = requested
        self.available = available
        label = name or self.product_id
        super().__init__({"stock": [f"Insufficient stock for {label}. Only {available} items available."]})


class InvalidTransition(ValidationError):
    """A status change that the order state machine does not allow."""

    def __init__(self, current: str, target: str, detail: str | None = None) -> None:
        self.current = current
        self.target = target
        super().__init__({"status": [detail or f"Cannot transition from {current} to {target}"]})


class Forbidden(Exception):
    """The caller does not own the resource and is not an admin."""


class SignatureMismatch(Exception):
    """A payment provider signature did not match the recomputed digest."""


class DuplicateKey(Exception):
    """A unique key (order number, SKU) is already taken."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} {value!r} already exists")
