"""Schemas for dispatch challans."""

from datetime import date
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ChallanCreate(BaseModel):
    """Per-size quantities to put on a new challan."""
    quantities: Dict[str, int]
    delivery_address: Optional[str] = Field(None, max_length=1000)
    estimated_delivery: Optional[date] = None
    courier_name: Optional[str] = Field(None, max_length=255)
    created_by: Optional[str] = Field(None, max_length=255)
    expected_version: Optional[int] = Field(None, ge=1)


class ShipRequest(BaseModel):
    courier_name: str = Field(..., min_length=1, max_length=255)
    tracking_number: Optional[str] = Field(None, max_length=100)
    expected_version: Optional[int] = Field(None, ge=1)


class DeliverRequest(BaseModel):
    actual_delivery: Optional[date] = None
    expected_version: Optional[int] = Field(None, ge=1)
