"""Dispatch reconciliation: shipping approved quantity on delivery challans.

Dispatch is two-phase. ``generate_challan`` records a pending challan and
its items, capped at what remains approved-but-unshipped. ``mark_dispatched``
then confirms courier details and recomputes the order status.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Literal, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from garment_erp.core.config import settings
from garment_erp.core.metrics import metrics
from garment_erp.db.session import atomic
from garment_erp.models.assignment import OrderBatchAssignment
from garment_erp.models.dispatch import DispatchOrder, DispatchOrderItem, DispatchStatus
from garment_erp.models.order import Order, OrderStatus, OrderType
from garment_erp.models.quality import QCReview
from garment_erp.services.errors import (
    ConflictError,
    NotFoundError,
    QuantityOutOfRangeError,
    ValidationError,
)
from garment_erp.services.ledger import LedgerLoader, LedgerTotals, QuantityLedger, reduce_ledger
from garment_erp.services.sizes import size_sort_key, sort_sizes

logger = logging.getLogger(__name__)


def remaining_by_size(ledgers: Mapping[str, QuantityLedger]) -> Dict[str, int]:
    """Approved minus dispatched, only for sizes with something left."""
    return {
        size: ledgers[size].approved - ledgers[size].dispatched
        for size in sort_sizes(ledgers)
        if ledgers[size].approved - ledgers[size].dispatched > 0
    }


def is_number_collision(exc: IntegrityError) -> bool:
    """True when *exc* is a duplicate challan number, not some other constraint."""
    message = str(exc.orig).lower()
    return "dispatch_number" in message and ("unique" in message or "duplicate" in message)


class DispatchService:
    """Generates challans and tracks shipment of approved quantity."""

    def __init__(
        self,
        db: Session,
        policy: Optional[Literal["clamp", "reject"]] = None,
        challan_prefix: Optional[str] = None,
    ):
        self.db = db
        self.policy = policy or settings.quantity_policy
        self.challan_prefix = challan_prefix or settings.challan_prefix
        self.loader = LedgerLoader(db)

    # ==================== Reads ====================

    def approved_total(self, order_id: int, size_name: str) -> int:
        ledger = self.loader.order_ledger(order_id).get(size_name)
        return ledger.approved if ledger else 0

    def dispatched_total(self, order_id: int, size_name: str) -> int:
        """Units on any challan of the order, whatever its status."""
        ledger = self.loader.order_ledger(order_id).get(size_name)
        return ledger.dispatched if ledger else 0

    def remaining_to_dispatch(self, order_id: int) -> Dict[str, int]:
        return remaining_by_size(self.loader.order_ledger(order_id))

    def get_dispatch_summary(self, order_id: int) -> dict:
        order = self.loader.get_order(order_id)
        return self._summary(order, reduce_ledger(self.loader.order_events(order)))

    def _summary(self, order: Order, ledgers: Mapping[str, QuantityLedger]) -> dict:
        totals = LedgerTotals.of(ledgers)
        remaining = remaining_by_size(ledgers)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_name": order.customer_name,
            "order_status": order.status,
            "version": order.version,
            "total_approved": totals.approved,
            "total_dispatched": totals.dispatched,
            "total_remaining": sum(remaining.values()),
            "sizes": [
                {
                    "size_name": size,
                    "approved": ledgers[size].approved,
                    "dispatched": ledgers[size].dispatched,
                    "remaining": remaining[size],
                }
                for size in remaining
            ],
        }

    def list_dispatch_orders(self, include_completed: bool = False) -> List[dict]:
        """Orders with approved quantity, with what is left to ship."""
        reviewed_ids = (
            select(OrderBatchAssignment.order_id)
            .join(QCReview, QCReview.order_batch_assignment_id == OrderBatchAssignment.id)
            .where(QCReview.approved_quantity > 0)
        )
        orders = (
            self.db.query(Order)
            .options(
                selectinload(Order.sizes),
                selectinload(Order.assignments).selectinload(
                    OrderBatchAssignment.size_distributions
                ),
            )
            .filter(or_(Order.id.in_(reviewed_ids), Order.order_type == OrderType.READYMADE))
            .filter(Order.status != OrderStatus.CANCELLED)
            .order_by(Order.id.desc())
            .all()
        )
        result = []
        for order in orders:
            summary = self._summary(order, reduce_ledger(self.loader.order_events(order)))
            if summary["total_approved"] <= 0:
                continue
            if not include_completed and summary["total_remaining"] <= 0:
                continue
            result.append(summary)
        return result

    def get_dispatch_order(self, dispatch_order_id: int) -> DispatchOrder:
        dispatch = (
            self.db.query(DispatchOrder)
            .options(selectinload(DispatchOrder.items))
            .filter(DispatchOrder.id == dispatch_order_id)
            .first()
        )
        if not dispatch:
            raise NotFoundError("Challan", dispatch_order_id)
        return dispatch

    def list_challans(self, status: Optional[DispatchStatus] = None) -> List[DispatchOrder]:
        query = self.db.query(DispatchOrder).options(selectinload(DispatchOrder.items))
        if status is not None:
            query = query.filter(DispatchOrder.status == status)
        return query.order_by(DispatchOrder.id.desc()).all()

    def get_challan(self, dispatch_order_id: int) -> dict:
        """Data for the printable challan document."""
        dispatch = self.get_dispatch_order(dispatch_order_id)
        order = self.loader.get_order(dispatch.order_id)
        totals = LedgerTotals.of(self.loader.order_ledger(order.id))
        previously = sum(
            item.quantity
            for item in self.db.query(DispatchOrderItem)
            .filter(
                DispatchOrderItem.order_id == order.id,
                DispatchOrderItem.dispatch_order_id < dispatch.id,
            )
            .all()
        )
        return {
            **self.challan_to_dict(dispatch),
            "order_number": order.order_number,
            "customer_name": order.customer_name,
            "total_approved": totals.approved,
            "previously_dispatched": previously,
            "this_dispatch": dispatch.total_quantity,
        }

    @staticmethod
    def challan_to_dict(dispatch: DispatchOrder) -> dict:
        return {
            "id": dispatch.id,
            "dispatch_number": dispatch.dispatch_number,
            "order_id": dispatch.order_id,
            "dispatch_date": dispatch.dispatch_date.isoformat() if dispatch.dispatch_date else None,
            "status": dispatch.status,
            "courier_name": dispatch.courier_name,
            "tracking_number": dispatch.tracking_number,
            "delivery_address": dispatch.delivery_address,
            "estimated_delivery": (
                dispatch.estimated_delivery.isoformat() if dispatch.estimated_delivery else None
            ),
            "actual_delivery": (
                dispatch.actual_delivery.isoformat() if dispatch.actual_delivery else None
            ),
            "version": dispatch.version,
            "total_quantity": dispatch.total_quantity,
            "items": [
                {"size_name": item.size_name, "quantity": item.quantity}
                for item in sorted(dispatch.items, key=lambda i: size_sort_key(i.size_name))
            ],
        }

    # ==================== Writes ====================

    def next_dispatch_number(self, on: date) -> str:
        stem = f"{self.challan_prefix}-{on:%Y%m%d}-"
        numbers = (
            self.db.query(DispatchOrder.dispatch_number)
            .filter(DispatchOrder.dispatch_number.like(f"{stem}%"))
            .all()
        )
        seq = 0
        for (number,) in numbers:
            suffix = number[len(stem):]
            if suffix.isdigit():
                seq = max(seq, int(suffix))
        return f"{stem}{seq + 1:04d}"

    def generate_challan(
        self,
        order_id: int,
        quantities: Mapping[str, int],
        delivery_address: Optional[str] = None,
        estimated_delivery: Optional[date] = None,
        courier_name: Optional[str] = None,
        created_by: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> DispatchOrder:
        """Create a pending challan for up to the remaining approved quantity."""
        order = self.loader.get_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise ValidationError(f"Order {order.order_number} is cancelled")
        ledgers = reduce_ledger(self.loader.order_events(order))

        items: Dict[str, int] = {}
        for size_name, qty in quantities.items():
            if qty < 0:
                raise ValidationError(
                    f"Size {size_name}: dispatch quantity cannot be negative", size_name=size_name
                )
            if qty == 0:
                continue
            ledger = ledgers.get(size_name)
            available = max(0, ledger.approved - ledger.dispatched) if ledger else 0
            if qty > available:
                if self.policy == "reject":
                    raise QuantityOutOfRangeError(size_name, qty, 0, available)
                logger.warning(
                    f"Capped dispatch of size {size_name} for order {order.order_number}: "
                    f"requested {qty}, remaining {available}"
                )
                qty = available
            if qty > 0:
                items[size_name] = qty

        if not items:
            raise ValidationError("Nothing to dispatch: no approved quantity remains for the selected sizes")

        today = date.today()
        try:
            with atomic(self.db):
                order.claim_version(self.db, expected_version)
                dispatch = DispatchOrder(
                    dispatch_number=self.next_dispatch_number(today),
                    order_id=order.id,
                    dispatch_date=today,
                    status=DispatchStatus.PENDING,
                    courier_name=courier_name,
                    delivery_address=delivery_address,
                    estimated_delivery=estimated_delivery,
                    created_by=created_by,
                )
                for size_name in sort_sizes(items):
                    dispatch.items.append(
                        DispatchOrderItem(
                            order_id=order.id, size_name=size_name, quantity=items[size_name]
                        )
                    )
                self.db.add(dispatch)
        except IntegrityError as e:
            if not is_number_collision(e):
                raise
            # Another challan took the same number between our read and insert
            logger.warning(f"Challan insert for order {order_id} failed: {e.orig}")
            raise ConflictError("Order", order_id) from e

        metrics.record_event("challans_generated")
        logger.info(
            f"Generated challan {dispatch.dispatch_number} for order {order.order_number}: "
            f"{sum(items.values())} units"
        )
        return dispatch

    def mark_dispatched(
        self,
        dispatch_order_id: int,
        courier_name: str,
        tracking_number: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> DispatchOrder:
        """Confirm shipment of a pending challan and update the order status."""
        dispatch = self.get_dispatch_order(dispatch_order_id)
        if dispatch.status != DispatchStatus.PENDING:
            raise ValidationError(
                f"Challan {dispatch.dispatch_number} is already {dispatch.status.value}"
            )
        if not (courier_name or "").strip():
            raise ValidationError("Courier name is required to mark a challan dispatched")

        order = self.loader.get_order(dispatch.order_id)
        with atomic(self.db):
            dispatch.claim_version(self.db, expected_version)
            dispatch.status = DispatchStatus.SHIPPED
            dispatch.courier_name = courier_name.strip()
            dispatch.tracking_number = (tracking_number or "").strip() or None
            dispatch.shipped_at = datetime.now(timezone.utc)

            totals = LedgerTotals.of(self.loader.order_ledger(order.id))
            if order.status not in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
                order.claim_version(self.db)
                if totals.dispatched >= totals.approved:
                    order.status = OrderStatus.DISPATCHED
                else:
                    order.status = OrderStatus.PARTIAL_DISPATCHED

        metrics.record_event("challans_shipped")
        logger.info(
            f"Challan {dispatch.dispatch_number} shipped via {dispatch.courier_name}; "
            f"order {order.order_number} is {order.status.value}"
        )
        return dispatch

    def mark_delivered(
        self,
        dispatch_order_id: int,
        actual_delivery: Optional[date] = None,
        expected_version: Optional[int] = None,
    ) -> DispatchOrder:
        dispatch = self.get_dispatch_order(dispatch_order_id)
        if dispatch.status != DispatchStatus.SHIPPED:
            raise ValidationError(
                f"Challan {dispatch.dispatch_number} must be shipped before delivery, "
                f"it is {dispatch.status.value}"
            )
        with atomic(self.db):
            dispatch.claim_version(self.db, expected_version)
            dispatch.status = DispatchStatus.DELIVERED
            dispatch.actual_delivery = actual_delivery or date.today()

        logger.info(f"Challan {dispatch.dispatch_number} delivered")
        return dispatch
