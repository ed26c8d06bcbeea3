"""Schemas for QC review."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ReviewEntryCreate(BaseModel):
    size_name: str = Field(..., min_length=1, max_length=20)
    approved: int = Field(0, ge=0)
    rejected: int = Field(0, ge=0)
    remarks: Optional[str] = Field(None, max_length=2000)
    expected_version: Optional[int] = Field(None, ge=1)


class ReviewSubmit(BaseModel):
    """Reviews for one or more sizes of an assignment, saved together."""
    reviewed_by: Optional[str] = Field(None, max_length=255)
    entries: List[ReviewEntryCreate] = Field(..., min_length=1)
