"""Domain exceptions raised by the reconciliation services.

Routes never catch these individually; ``garment_erp.main`` registers an
exception handler per class that maps it to an HTTP status.
"""

from typing import Optional


class ReconciliationError(Exception):
    """Base class for all reconciliation failures."""


class NotFoundError(ReconciliationError):
    """Raised when a referenced row does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ValidationError(ReconciliationError):
    """Raised when a write would break a quantity rule."""

    def __init__(self, message: str, size_name: Optional[str] = None):
        self.size_name = size_name
        super().__init__(message)


class QuantityOutOfRangeError(ValidationError):
    """Raised under the ``reject`` policy when an input falls outside its bounds."""

    def __init__(self, size_name: str, requested: int, lower: int, upper: int):
        self.requested = requested
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Quantity {requested} for size {size_name} is out of range [{lower}, {upper}]",
            size_name=size_name,
        )


class OverReviewError(ValidationError):
    """Raised when approved + rejected would exceed picked."""

    def __init__(self, size_name: str, picked: int, reviewed: int):
        self.picked = picked
        self.reviewed = reviewed
        super().__init__(
            f"Size {size_name}: reviewing {reviewed} exceeds picked quantity {picked}",
            size_name=size_name,
        )


class ConflictError(ReconciliationError):
    """Raised when a compare-and-swap write finds a newer version."""

    def __init__(self, entity: str, entity_id, expected: Optional[int] = None):
        self.entity = entity
        self.entity_id = entity_id
        self.expected = expected
        super().__init__(
            f"{entity} {entity_id} was modified by another user. Please refresh and try again."
        )
