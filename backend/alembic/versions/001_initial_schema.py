"""Initial schema

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy stores Python enums by member name
ORDER_STATUSES = (
    "PENDING", "CONFIRMED", "IN_PRODUCTION", "UNDER_QC", "READY_FOR_DISPATCH",
    "PARTIAL_DISPATCHED", "DISPATCHED", "COMPLETED", "CANCELLED",
)
ORDER_TYPES = ("CUSTOM", "READYMADE")
BATCH_STATUSES = ("ACTIVE", "INACTIVE")
DISPATCH_STATUSES = ("PENDING", "SHIPPED", "DELIVERED")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Orders and their size ledger
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(50), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("order_type", sa.Enum(*ORDER_TYPES, name="ordertype"), nullable=False),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="orderstatus"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_size_quantities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("size_name", sa.String(20), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("order_id", "size_name", name="uq_order_size"),
    )

    # Batches
    op.create_table(
        "batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_name", sa.String(100), nullable=False),
        sa.Column("batch_code", sa.String(50), nullable=False),
        sa.Column("tailor_type", sa.String(50), nullable=True),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Enum(*BATCH_STATUSES, name="batchstatus"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_batches_batch_code", "batches", ["batch_code"], unique=True)

    # Batch assignments
    op.create_table(
        "order_batch_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("assigned_by_name", sa.String(255), nullable=True),
        sa.Column("assignment_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("order_id", "batch_id", name="uq_order_batch"),
    )

    op.create_table(
        "order_batch_size_distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "order_batch_assignment_id", sa.Integer(),
            sa.ForeignKey("order_batch_assignments.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("size_name", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("picked_quantity", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("order_batch_assignment_id", "size_name", name="uq_assignment_size"),
    )

    # QC reviews (append-only)
    op.create_table(
        "qc_reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "order_batch_assignment_id", sa.Integer(),
            sa.ForeignKey("order_batch_assignments.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("size_name", sa.String(20), nullable=False),
        sa.Column("approved_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejected_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Dispatch
    op.create_table(
        "dispatch_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("dispatch_number", sa.String(50), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("dispatch_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Enum(*DISPATCH_STATUSES, name="dispatchstatus"), nullable=False),
        sa.Column("courier_name", sa.String(255), nullable=True),
        sa.Column("tracking_number", sa.String(100), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("estimated_delivery", sa.Date(), nullable=True),
        sa.Column("actual_delivery", sa.Date(), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_dispatch_orders_dispatch_number", "dispatch_orders", ["dispatch_number"], unique=True)
    op.create_index("ix_dispatch_orders_status", "dispatch_orders", ["status"])

    op.create_table(
        "dispatch_order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "dispatch_order_id", sa.Integer(),
            sa.ForeignKey("dispatch_orders.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("size_name", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("dispatch_order_items")
    op.drop_table("dispatch_orders")
    op.drop_table("qc_reviews")
    op.drop_table("order_batch_size_distributions")
    op.drop_table("order_batch_assignments")
    op.drop_table("batches")
    op.drop_table("order_size_quantities")
    op.drop_table("orders")
