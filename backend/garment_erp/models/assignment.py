"""Batch assignment models: an order's quantities allocated to a batch."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from garment_erp.db.base import Base, TimestampMixin, VersionMixin
from garment_erp.models.validators import non_negative, validate_size_name

logger = logging.getLogger(__name__)


class OrderBatchAssignment(Base, TimestampMixin, VersionMixin):
    """One batch's share of an order.

    ``total_quantity`` is kept equal to the sum of the size rows.
    ``notes`` may hold legacy JSON of the form
    ``{"picked_by_size": {"M": 4}}`` written before ``picked_quantity``
    existed as a column.
    """

    __tablename__ = "order_batch_assignments"
    __table_args__ = (UniqueConstraint("order_id", "batch_id", name="uq_order_batch"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    batch_id: Mapped[int] = mapped_column(
        ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    assignment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="assignments")
    batch: Mapped["Batch"] = relationship("Batch", back_populates="assignments")
    size_distributions: Mapped[list["OrderBatchSizeDistribution"]] = relationship(
        "OrderBatchSizeDistribution",
        back_populates="assignment",
        cascade="all, delete-orphan",
    )
    qc_reviews: Mapped[list["QCReview"]] = relationship(
        "QCReview", back_populates="assignment", cascade="all, delete-orphan"
    )

    @validates("total_quantity")
    def _validate_total(self, key, value):
        return non_negative(key, value)

    def size_row(self, size_name: str) -> Optional["OrderBatchSizeDistribution"]:
        for row in self.size_distributions:
            if row.size_name == size_name:
                return row
        return None

    def recalculate_total(self) -> int:
        self.total_quantity = sum(row.quantity for row in self.size_distributions)
        return self.total_quantity

    def legacy_picked_by_size(self) -> dict[str, int]:
        """Parse picked quantities stored in ``notes`` by older clients."""
        if not self.notes:
            return {}
        try:
            data = json.loads(self.notes)
        except (TypeError, ValueError):
            return {}
        if not isinstance(data, dict) or not isinstance(data.get("picked_by_size"), dict):
            return {}
        picked = {}
        for size, qty in data["picked_by_size"].items():
            try:
                picked[size] = max(0, int(qty))
            except (TypeError, ValueError):
                logger.warning(
                    f"Ignoring non-numeric legacy picked value {qty!r} "
                    f"for assignment {self.id} size {size}"
                )
        return picked


class OrderBatchSizeDistribution(Base, VersionMixin):
    """Allocated and picked quantity for one size within a batch assignment."""

    __tablename__ = "order_batch_size_distributions"
    __table_args__ = (
        UniqueConstraint("order_batch_assignment_id", "size_name", name="uq_assignment_size"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    order_batch_assignment_id: Mapped[int] = mapped_column(
        ForeignKey("order_batch_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size_name: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # NULL only on rows written before the column existed; see picked()
    picked_quantity: Mapped[Optional[int]] = mapped_column(Integer, default=0, nullable=True)

    assignment: Mapped["OrderBatchAssignment"] = relationship(
        "OrderBatchAssignment", back_populates="size_distributions"
    )

    @validates("size_name")
    def _validate_size_name(self, key, value):
        return validate_size_name(key, value)

    @validates("quantity", "picked_quantity")
    def _validate_quantities(self, key, value):
        return non_negative(key, value)

    def picked(self) -> int:
        """Picked quantity, falling back to the assignment's legacy notes JSON."""
        if self.picked_quantity is not None:
            return self.picked_quantity
        legacy = self.assignment.legacy_picked_by_size().get(self.size_name, 0)
        if legacy:
            logger.warning(
                f"Reading picked quantity for assignment {self.order_batch_assignment_id} "
                f"size {self.size_name} from legacy notes"
            )
        return legacy


# Forward references
from garment_erp.models.order import Order
from garment_erp.models.batch import Batch
from garment_erp.models.quality import QCReview
