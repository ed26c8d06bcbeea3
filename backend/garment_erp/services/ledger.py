"""Quantity ledger: per-size running balances for an order.

Every stage of the pipeline (distribution, picking, QC, dispatch) reads its
numbers from a ``QuantityLedger``. Ledgers are produced by ``reduce_ledger``,
a pure fold over ledger events, so the arithmetic can be tested without a
database. ``LedgerLoader`` turns stored rows into events.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Union

from sqlalchemy.orm import Session, selectinload

from garment_erp.models.assignment import OrderBatchAssignment, OrderBatchSizeDistribution
from garment_erp.models.dispatch import DispatchOrderItem
from garment_erp.models.order import Order, OrderType
from garment_erp.models.quality import QCReview
from garment_erp.services.errors import NotFoundError
from garment_erp.services.sizes import sort_sizes

logger = logging.getLogger(__name__)


# ==================== Events ====================

@dataclass(frozen=True)
class Ordered:
    size_name: str
    quantity: int


@dataclass(frozen=True)
class Allocated:
    size_name: str
    quantity: int


@dataclass(frozen=True)
class Picked:
    size_name: str
    quantity: int


@dataclass(frozen=True)
class Reviewed:
    size_name: str
    approved: int
    rejected: int


@dataclass(frozen=True)
class Dispatched:
    size_name: str
    quantity: int


LedgerEvent = Union[Ordered, Allocated, Picked, Reviewed, Dispatched]


# ==================== Ledger ====================

@dataclass(frozen=True)
class QuantityLedger:
    """Cumulative quantities for one size."""

    size_name: str
    ordered: int = 0
    allocated: int = 0
    picked: int = 0
    approved: int = 0
    rejected: int = 0
    dispatched: int = 0

    @property
    def undistributed(self) -> int:
        return self.ordered - self.allocated

    @property
    def reviewed(self) -> int:
        return self.approved + self.rejected

    @property
    def effective_picked(self) -> int:
        """Picked units still in play once rejected units are taken out."""
        return max(0, self.picked - self.rejected)

    @property
    def awaiting_review(self) -> int:
        return max(0, self.picked - self.reviewed)

    @property
    def unapproved(self) -> int:
        """Picked units not (yet) approved, rejected ones included."""
        return max(0, self.picked - self.approved)

    @property
    def remaining_to_pick(self) -> int:
        return max(0, self.allocated - self.effective_picked)

    @property
    def shippable(self) -> int:
        return max(0, self.approved - self.dispatched)

    @property
    def qc_complete(self) -> bool:
        return self.picked > 0 and self.reviewed == self.picked

    def apply(self, event: LedgerEvent) -> "QuantityLedger":
        if isinstance(event, Ordered):
            return replace(self, ordered=self.ordered + event.quantity)
        if isinstance(event, Allocated):
            return replace(self, allocated=self.allocated + event.quantity)
        if isinstance(event, Picked):
            return replace(self, picked=self.picked + event.quantity)
        if isinstance(event, Reviewed):
            return replace(
                self,
                approved=self.approved + event.approved,
                rejected=self.rejected + event.rejected,
            )
        if isinstance(event, Dispatched):
            return replace(self, dispatched=self.dispatched + event.quantity)
        raise TypeError(f"Unknown ledger event: {event!r}")

    def to_dict(self) -> dict:
        return {
            "size_name": self.size_name,
            "ordered": self.ordered,
            "allocated": self.allocated,
            "undistributed": self.undistributed,
            "picked": self.picked,
            "effective_picked": self.effective_picked,
            "approved": self.approved,
            "rejected": self.rejected,
            "awaiting_review": self.awaiting_review,
            "dispatched": self.dispatched,
            "shippable": self.shippable,
            "qc_complete": self.qc_complete,
        }


def reduce_ledger(events: Iterable[LedgerEvent]) -> Dict[str, QuantityLedger]:
    """Fold events into one ledger per size."""
    ledgers: Dict[str, QuantityLedger] = {}
    for event in events:
        current = ledgers.get(event.size_name) or QuantityLedger(event.size_name)
        ledgers[event.size_name] = current.apply(event)
    return ledgers


@dataclass
class LedgerTotals:
    """Sums across sizes, used for order- and batch-level status."""

    ordered: int = 0
    allocated: int = 0
    picked: int = 0
    approved: int = 0
    rejected: int = 0
    dispatched: int = 0
    sizes: List[str] = field(default_factory=list)

    @classmethod
    def of(cls, ledgers: Dict[str, QuantityLedger]) -> "LedgerTotals":
        totals = cls(sizes=sort_sizes(ledgers))
        for ledger in ledgers.values():
            totals.ordered += ledger.ordered
            totals.allocated += ledger.allocated
            totals.picked += ledger.picked
            totals.approved += ledger.approved
            totals.rejected += ledger.rejected
            totals.dispatched += ledger.dispatched
        return totals

    @property
    def effective_picked(self) -> int:
        return max(0, self.picked - self.rejected)

    @property
    def awaiting_review(self) -> int:
        return max(0, self.picked - self.approved - self.rejected)

    @property
    def qc_complete(self) -> bool:
        return self.picked > 0 and self.approved + self.rejected == self.picked


# ==================== Loading ====================

class LedgerLoader:
    """Builds ledger events from stored rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: int) -> Order:
        order = (
            self.db.query(Order)
            .options(
                selectinload(Order.sizes),
                selectinload(Order.assignments).selectinload(
                    OrderBatchAssignment.size_distributions
                ),
            )
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def get_assignment(self, assignment_id: int) -> OrderBatchAssignment:
        assignment = (
            self.db.query(OrderBatchAssignment)
            .options(selectinload(OrderBatchAssignment.size_distributions))
            .filter(OrderBatchAssignment.id == assignment_id)
            .first()
        )
        if not assignment:
            raise NotFoundError("Batch assignment", assignment_id)
        return assignment

    def assignment_events(self, assignment: OrderBatchAssignment) -> List[LedgerEvent]:
        events: List[LedgerEvent] = []
        for row in assignment.size_distributions:
            events.append(Allocated(row.size_name, row.quantity))
            picked = row.picked()
            if picked:
                events.append(Picked(row.size_name, picked))
        reviews = (
            self.db.query(QCReview)
            .filter(QCReview.order_batch_assignment_id == assignment.id)
            .order_by(QCReview.id)
            .all()
        )
        events.extend(
            Reviewed(r.size_name, r.approved_quantity, r.rejected_quantity) for r in reviews
        )
        return events

    def order_events(self, order: Order) -> List[LedgerEvent]:
        events: List[LedgerEvent] = [
            Ordered(s.size_name, s.total_quantity) for s in order.sizes if s.total_quantity > 0
        ]
        for assignment in order.assignments:
            events.extend(self.assignment_events(assignment))

        if order.order_type == OrderType.READYMADE:
            # Readymade stock skips production; everything ordered counts as approved
            events.extend(
                Reviewed(s.size_name, s.total_quantity, 0)
                for s in order.sizes
                if s.total_quantity > 0
            )

        items = (
            self.db.query(DispatchOrderItem)
            .filter(DispatchOrderItem.order_id == order.id)
            .order_by(DispatchOrderItem.id)
            .all()
        )
        events.extend(Dispatched(i.size_name, i.quantity) for i in items)
        return events

    def order_ledger(self, order_id: int) -> Dict[str, QuantityLedger]:
        return reduce_ledger(self.order_events(self.get_order(order_id)))

    def assignment_ledger(
        self, assignment: Union[int, OrderBatchAssignment]
    ) -> Dict[str, QuantityLedger]:
        if isinstance(assignment, int):
            assignment = self.get_assignment(assignment)
        return reduce_ledger(self.assignment_events(assignment))


def ledger_rows(ledgers: Dict[str, QuantityLedger]) -> List[dict]:
    """Serialize ledgers in garment size order."""
    return [ledgers[size].to_dict() for size in sort_sizes(ledgers)]


def find_size_row(
    assignment: OrderBatchAssignment, size_name: str
) -> OrderBatchSizeDistribution:
    row = assignment.size_row(size_name)
    if row is None:
        raise NotFoundError(f"Size {size_name} of batch assignment", assignment.id)
    return row
