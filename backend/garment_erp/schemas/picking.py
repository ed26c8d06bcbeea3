"""Schemas for pick recording."""

from typing import Optional

from pydantic import BaseModel, Field


class PickCreate(BaseModel):
    """A pick event: delta is added to the size's picked count (may be negative)."""
    size_name: str = Field(..., min_length=1, max_length=20)
    delta: int
    expected_version: Optional[int] = Field(None, ge=1)


class PickResponse(BaseModel):
    assignment_id: int
    size_name: str
    requested: int
    picked: int
    clamped: bool
    allocated: int
    remaining_to_pick: int
    version: int
