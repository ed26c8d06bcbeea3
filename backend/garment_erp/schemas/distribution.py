"""Schemas for batch distribution and reassignment."""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DistributionSave(BaseModel):
    """Full-replace distribution for an order: batch id -> size -> quantity."""
    allocations: Dict[int, Dict[str, int]]
    assigned_by: Optional[str] = Field(None, max_length=255)
    expected_version: Optional[int] = Field(None, ge=1)

    @field_validator("allocations")
    @classmethod
    def validate_quantities(cls, v: Dict[int, Dict[str, int]]) -> Dict[int, Dict[str, int]]:
        for batch_id, sizes in v.items():
            for size_name, qty in sizes.items():
                if qty < 0:
                    raise ValueError(f"Batch {batch_id} size {size_name}: quantity cannot be negative")
        return v


class ReassignRequest(BaseModel):
    """Move unpicked quantity to another batch; omit quantities to move all of it."""
    new_batch_id: int = Field(..., gt=0)
    quantities: Optional[Dict[str, int]] = None
    reassigned_by: Optional[str] = Field(None, max_length=255)
    expected_version: Optional[int] = Field(None, ge=1)


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    batch_name: str
    batch_code: str
    tailor_type: Optional[str] = None
    max_capacity: int
    current_capacity: int
    available_capacity: int


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    batch_id: int
    total_quantity: int
    assigned_by_name: Optional[str] = None
    version: int
    sizes: Dict[str, int] = {}
