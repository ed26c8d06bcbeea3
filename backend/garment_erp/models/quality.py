"""QC review model."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from garment_erp.db.base import Base
from garment_erp.models.validators import non_negative, validate_size_name


class QCReview(Base):
    """One QC review event for a size of a batch assignment.

    Rows are append-only: cumulative approved/rejected quantities are the
    sums over all rows for the (assignment, size) pair.
    """

    __tablename__ = "qc_reviews"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_batch_assignment_id: Mapped[int] = mapped_column(
        ForeignKey("order_batch_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size_name: Mapped[str] = mapped_column(String(20), nullable=False)
    approved_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rejected_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    assignment: Mapped["OrderBatchAssignment"] = relationship(
        "OrderBatchAssignment", back_populates="qc_reviews"
    )

    @validates("size_name")
    def _validate_size_name(self, key, value):
        return validate_size_name(key, value)

    @validates("approved_quantity", "rejected_quantity")
    def _validate_quantities(self, key, value):
        return non_negative(key, value)


# Forward references
from garment_erp.models.assignment import OrderBatchAssignment
