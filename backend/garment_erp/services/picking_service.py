"""Pick recording for batch assignments."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from garment_erp.core.config import settings
from garment_erp.core.metrics import metrics
from garment_erp.db.session import atomic
from garment_erp.models.assignment import OrderBatchAssignment
from garment_erp.models.batch import Batch, BatchStatus
from garment_erp.models.order import OrderStatus
from garment_erp.models.quality import QCReview
from garment_erp.services.errors import QuantityOutOfRangeError
from garment_erp.services.ledger import LedgerLoader, LedgerTotals, find_size_row
from garment_erp.services.sizes import sort_sizes

logger = logging.getLogger(__name__)

QuantityPolicy = Literal["clamp", "reject"]


@dataclass
class PickResult:
    assignment_id: int
    size_name: str
    requested: int
    picked: int
    clamped: bool
    allocated: int
    remaining_to_pick: int
    version: int


def pick_bounds(allocated: int, approved: int, rejected: int) -> tuple:
    """Range a size's picked counter may take.

    Reviewed units cannot be un-picked, and rejected units go back to the
    pick pool, so they can be picked again on top of the allocation.
    """
    return approved + rejected, allocated + rejected


class PickingService:
    """Records picked quantities and summarizes batch progress."""

    def __init__(self, db: Session, policy: Optional[QuantityPolicy] = None):
        self.db = db
        self.policy = policy or settings.quantity_policy
        self.loader = LedgerLoader(db)

    def record_pick(
        self,
        assignment_id: int,
        size_name: str,
        delta: int,
        expected_version: Optional[int] = None,
    ) -> PickResult:
        """Add *delta* (may be negative) to the picked count of one size."""
        assignment = self.loader.get_assignment(assignment_id)
        row = find_size_row(assignment, size_name)
        ledger = self.loader.assignment_ledger(assignment)[size_name]

        lower, upper = pick_bounds(ledger.allocated, ledger.approved, ledger.rejected)
        requested = ledger.picked + delta
        picked = min(max(requested, lower), upper)
        clamped = picked != requested
        if clamped:
            if self.policy == "reject":
                raise QuantityOutOfRangeError(size_name, requested, lower, upper)
            logger.warning(
                f"Clamped pick for assignment {assignment_id} size {size_name}: "
                f"requested {requested}, stored {picked} (range {lower}-{upper})"
            )

        with atomic(self.db):
            version = row.claim_version(self.db, expected_version)
            # Writing the column also retires any legacy notes value for this size
            row.picked_quantity = picked
            assignment.order.advance_status(OrderStatus.IN_PRODUCTION)

        metrics.record_event("picks_recorded")
        logger.info(
            f"Assignment {assignment_id} size {size_name}: picked {ledger.picked} -> {picked}"
        )
        effective = max(0, picked - ledger.rejected)
        return PickResult(
            assignment_id=assignment_id,
            size_name=size_name,
            requested=requested,
            picked=picked,
            clamped=clamped,
            allocated=ledger.allocated,
            remaining_to_pick=max(0, ledger.allocated - effective),
            version=version,
        )

    def get_pick_sheet(self, assignment_id: int) -> dict:
        """Per-size allocation and pick progress for one assignment."""
        assignment = self.loader.get_assignment(assignment_id)
        ledgers = self.loader.assignment_ledger(assignment)
        totals = LedgerTotals.of(ledgers)
        return {
            "assignment_id": assignment.id,
            "order_id": assignment.order_id,
            "order_number": assignment.order.order_number,
            "batch_id": assignment.batch_id,
            "batch_name": assignment.batch.batch_name,
            "has_outstanding_work": self.has_outstanding_work(totals),
            "sizes": [
                {
                    "size_name": size,
                    "allocated": ledgers[size].allocated,
                    "picked": ledgers[size].picked,
                    "rejected": ledgers[size].rejected,
                    "effective_picked": ledgers[size].effective_picked,
                    "remaining_to_pick": ledgers[size].remaining_to_pick,
                    "version": assignment.size_row(size).version,
                }
                for size in sort_sizes(ledgers)
            ],
        }

    @staticmethod
    def has_outstanding_work(totals: LedgerTotals) -> bool:
        return totals.effective_picked < totals.allocated

    def batch_pick_summary(self) -> List[dict]:
        """Assigned, picked and rejected totals for every active batch."""
        batches = (
            self.db.query(Batch)
            .options(
                selectinload(Batch.assignments).selectinload(
                    OrderBatchAssignment.size_distributions
                )
            )
            .filter(Batch.status == BatchStatus.ACTIVE)
            .order_by(Batch.batch_name)
            .all()
        )
        rejected_by_assignment = self._rejected_by_assignment()

        summary = []
        for batch in batches:
            assigned = sum(a.total_quantity for a in batch.assignments)
            picked = sum(
                row.picked() for a in batch.assignments for row in a.size_distributions
            )
            rejected = sum(rejected_by_assignment.get(a.id, 0) for a in batch.assignments)
            effective = max(0, picked - rejected)
            summary.append({
                "batch_id": batch.id,
                "batch_name": batch.batch_name,
                "batch_code": batch.batch_code,
                "tailor_type": batch.tailor_type,
                "assigned_orders": len({a.order_id for a in batch.assignments}),
                "assigned_quantity": assigned,
                "picked_quantity": picked,
                "rejected_quantity": rejected,
                "effective_picked": effective,
                "has_outstanding_work": effective < assigned,
            })
        return summary

    def _rejected_by_assignment(self) -> Dict[int, int]:
        rows = (
            self.db.query(
                QCReview.order_batch_assignment_id,
                func.coalesce(func.sum(QCReview.rejected_quantity), 0),
            )
            .group_by(QCReview.order_batch_assignment_id)
            .all()
        )
        return {assignment_id: int(total) for assignment_id, total in rows}
