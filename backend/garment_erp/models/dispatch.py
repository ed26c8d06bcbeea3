"""Dispatch (delivery challan) models."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from garment_erp.db.base import Base, TimestampMixin, VersionMixin
from garment_erp.models.validators import positive, validate_size_name


class DispatchStatus(str, Enum):
    """Lifecycle of a challan: pending -> shipped -> delivered."""

    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class DispatchOrder(Base, TimestampMixin, VersionMixin):
    """A delivery challan for part or all of an order's approved quantity."""

    __tablename__ = "dispatch_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    dispatch_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    dispatch_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[DispatchStatus] = mapped_column(
        SQLEnum(DispatchStatus), default=DispatchStatus.PENDING, nullable=False, index=True
    )
    courier_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    actual_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="dispatch_orders")
    items: Mapped[list["DispatchOrderItem"]] = relationship(
        "DispatchOrderItem", back_populates="dispatch_order", cascade="all, delete-orphan"
    )

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


class DispatchOrderItem(Base):
    """Quantity of one size shipped on a challan."""

    __tablename__ = "dispatch_order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    dispatch_order_id: Mapped[int] = mapped_column(
        ForeignKey("dispatch_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    size_name: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    dispatch_order: Mapped["DispatchOrder"] = relationship("DispatchOrder", back_populates="items")

    @validates("size_name")
    def _validate_size_name(self, key, value):
        return validate_size_name(key, value)

    @validates("quantity")
    def _validate_quantity(self, key, value):
        return positive(key, value)


# Forward references
from garment_erp.models.order import Order
