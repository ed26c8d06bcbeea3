"""Production batch (tailor group) model."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Enum as SQLEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from garment_erp.db.base import Base, TimestampMixin
from garment_erp.models.validators import non_negative


class BatchStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Batch(Base, TimestampMixin):
    """A tailoring batch that production quantities are distributed to."""

    __tablename__ = "batches"

    id: Mapped[int] = mapped_column(primary_key=True)
    batch_name: Mapped[str] = mapped_column(String(100), nullable=False)
    batch_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    tailor_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[BatchStatus] = mapped_column(
        SQLEnum(BatchStatus), default=BatchStatus.ACTIVE, nullable=False
    )

    assignments: Mapped[list["OrderBatchAssignment"]] = relationship(
        "OrderBatchAssignment", back_populates="batch"
    )

    @validates("max_capacity", "current_capacity")
    def _validate_capacity(self, key, value):
        return non_negative(key, value)

    @property
    def available_capacity(self) -> int:
        return max(0, (self.max_capacity or 0) - (self.current_capacity or 0))

    @property
    def is_active(self) -> bool:
        return self.status == BatchStatus.ACTIVE


# Forward references
from garment_erp.models.assignment import OrderBatchAssignment
