"""SQLAlchemy models."""

from garment_erp.models.order import Order, OrderSizeQuantity, OrderStatus, OrderType
from garment_erp.models.batch import Batch, BatchStatus
from garment_erp.models.assignment import OrderBatchAssignment, OrderBatchSizeDistribution
from garment_erp.models.quality import QCReview
from garment_erp.models.dispatch import DispatchOrder, DispatchOrderItem, DispatchStatus

__all__ = [
    "Order",
    "OrderSizeQuantity",
    "OrderStatus",
    "OrderType",
    "Batch",
    "BatchStatus",
    "OrderBatchAssignment",
    "OrderBatchSizeDistribution",
    "QCReview",
    "DispatchOrder",
    "DispatchOrderItem",
    "DispatchStatus",
]
