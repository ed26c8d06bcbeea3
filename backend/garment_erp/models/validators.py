"""Model-level validation utilities for quantity integrity.

Provides reusable validators that enforce quantity rules at the ORM level,
preventing invalid data from reaching the database regardless of which
service writes it.
"""


def non_negative(key: str, value):
    """Validate that a quantity is >= 0."""
    if value is not None and value < 0:
        raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a quantity is > 0."""
    if value is not None and value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def validate_size_name(key: str, value):
    """Strip a size label and reject blanks."""
    if value is None:
        raise ValueError(f"{key} is required")
    value = value.strip()
    if not value:
        raise ValueError(f"{key} cannot be blank")
    return value
