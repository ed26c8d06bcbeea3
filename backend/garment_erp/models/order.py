"""Order and size ledger models."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Enum as SQLEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from garment_erp.db.base import Base, TimestampMixin, VersionMixin
from garment_erp.models.validators import non_negative, validate_size_name


class OrderStatus(str, Enum):
    """Production stage of an order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    UNDER_QC = "under_qc"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    PARTIAL_DISPATCHED = "partial_dispatched"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Stage order used for forward-only promotion; CANCELLED is terminal.
STAGE_ORDER = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.UNDER_QC,
    OrderStatus.READY_FOR_DISPATCH,
    OrderStatus.PARTIAL_DISPATCHED,
    OrderStatus.DISPATCHED,
    OrderStatus.COMPLETED,
]


class OrderType(str, Enum):
    """Custom orders go through production; readymade orders ship from stock."""

    CUSTOM = "custom"
    READYMADE = "readymade"


class Order(Base, TimestampMixin, VersionMixin):
    """A customer garment order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_type: Mapped[OrderType] = mapped_column(
        SQLEnum(OrderType), default=OrderType.CUSTOM, nullable=False
    )
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True
    )

    # Relationships
    sizes: Mapped[list["OrderSizeQuantity"]] = relationship(
        "OrderSizeQuantity", back_populates="order", cascade="all, delete-orphan"
    )
    assignments: Mapped[list["OrderBatchAssignment"]] = relationship(
        "OrderBatchAssignment", back_populates="order", cascade="all, delete-orphan"
    )
    dispatch_orders: Mapped[list["DispatchOrder"]] = relationship(
        "DispatchOrder", back_populates="order"
    )

    @property
    def size_ledger(self) -> dict[str, int]:
        """Size -> total quantity, ignoring sizes with nothing ordered."""
        return {s.size_name: s.total_quantity for s in self.sizes if s.total_quantity > 0}

    def advance_status(self, target: OrderStatus) -> bool:
        """Move the order forward to *target*; never moves it back.

        Returns True when the status changed.
        """
        if self.status == OrderStatus.CANCELLED or target == OrderStatus.CANCELLED:
            return False
        if STAGE_ORDER.index(target) > STAGE_ORDER.index(self.status):
            self.status = target
            return True
        return False


class OrderSizeQuantity(Base):
    """Ordered quantity for one size of an order (the size ledger)."""

    __tablename__ = "order_size_quantities"
    __table_args__ = (UniqueConstraint("order_id", "size_name", name="uq_order_size"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    size_name: Mapped[str] = mapped_column(String(20), nullable=False)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="sizes")

    @validates("size_name")
    def _validate_size_name(self, key, value):
        return validate_size_name(key, value)

    @validates("total_quantity")
    def _validate_total(self, key, value):
        return non_negative(key, value)


# Forward references
from garment_erp.models.assignment import OrderBatchAssignment
from garment_erp.models.dispatch import DispatchOrder
