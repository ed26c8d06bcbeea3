"""QC review: classifying picked quantity into approved and rejected.

Reviews are append-only. Each submission adds a ``QCReview`` row and the
cumulative approved/rejected figures are sums over those rows. Order-level
QC status is never stored; it is recomputed from the rows on every read.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from garment_erp.core.metrics import metrics
from garment_erp.db.session import atomic
from garment_erp.models.assignment import OrderBatchAssignment
from garment_erp.models.batch import Batch
from garment_erp.models.order import Order, OrderStatus
from garment_erp.models.quality import QCReview
from garment_erp.services.errors import NotFoundError, OverReviewError, ValidationError
from garment_erp.services.ledger import LedgerLoader, LedgerTotals, find_size_row
from garment_erp.services.sizes import size_sort_key, sort_sizes

logger = logging.getLogger(__name__)


class QCStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


@dataclass
class ReviewEntry:
    size_name: str
    approved: int = 0
    rejected: int = 0
    remarks: Optional[str] = None
    expected_version: Optional[int] = None


class QCService:
    """Submits QC reviews and reports QC progress."""

    def __init__(self, db: Session):
        self.db = db
        self.loader = LedgerLoader(db)

    def submit_review(
        self,
        assignment_id: int,
        size_name: str,
        approved: int,
        rejected: int,
        remarks: Optional[str] = None,
        reviewed_by: Optional[str] = None,
    ) -> QCReview:
        entry = ReviewEntry(size_name, approved, rejected, remarks)
        return self.submit_reviews(assignment_id, [entry], reviewed_by)[0]

    def submit_reviews(
        self,
        assignment_id: int,
        entries: List[ReviewEntry],
        reviewed_by: Optional[str] = None,
    ) -> List[QCReview]:
        """Append reviews for several sizes of one assignment atomically."""
        if not entries:
            raise ValidationError("No review quantities submitted")
        assignment = self.loader.get_assignment(assignment_id)
        ledgers = self.loader.assignment_ledger(assignment)

        sizes = [e.size_name for e in entries]
        if len(set(sizes)) != len(sizes):
            raise ValidationError("Each size may appear only once per submission")

        for entry in entries:
            find_size_row(assignment, entry.size_name)
            self._check_entry(entry, ledgers.get(entry.size_name))

        reviews = []
        with atomic(self.db):
            for entry in entries:
                row = assignment.size_row(entry.size_name)
                row.claim_version(self.db, entry.expected_version)
                review = QCReview(
                    order_batch_assignment_id=assignment.id,
                    size_name=entry.size_name,
                    approved_quantity=entry.approved,
                    rejected_quantity=entry.rejected,
                    remarks=(entry.remarks or "").strip() or None,
                    reviewed_by=reviewed_by,
                )
                self.db.add(review)
                reviews.append(review)
            self.db.flush()
            self._promote_order(assignment.order)

        metrics.record_event("reviews_submitted", len(reviews))
        logger.info(
            f"QC review for assignment {assignment_id}: "
            + ", ".join(f"{e.size_name} +{e.approved}/-{e.rejected}" for e in entries)
        )
        return reviews

    @staticmethod
    def _check_entry(entry: ReviewEntry, ledger) -> None:
        if entry.approved < 0 or entry.rejected < 0:
            raise ValidationError(
                f"Size {entry.size_name}: review quantities cannot be negative",
                size_name=entry.size_name,
            )
        if entry.approved == 0 and entry.rejected == 0:
            raise ValidationError(
                f"Size {entry.size_name}: enter an approved or rejected quantity",
                size_name=entry.size_name,
            )
        if entry.rejected > 0 and not (entry.remarks or "").strip():
            raise ValidationError(
                f"Size {entry.size_name}: remarks are required for rejected items",
                size_name=entry.size_name,
            )
        picked = ledger.picked if ledger else 0
        reviewed = (ledger.reviewed if ledger else 0) + entry.approved + entry.rejected
        if reviewed > picked:
            raise OverReviewError(entry.size_name, picked, reviewed)

    def _promote_order(self, order: Order) -> None:
        summary = self.order_summary(order)
        order.advance_status(OrderStatus.UNDER_QC)
        if summary["qc_status"] == QCStatus.COMPLETED and summary["approved"] > 0:
            order.advance_status(OrderStatus.READY_FOR_DISPATCH)

    # ==================== Status ====================

    def order_summary(self, order: Order) -> dict:
        """Totals and QC status across every assignment of an order."""
        any_review = False
        all_complete = bool(order.assignments)
        totals = LedgerTotals()
        for assignment in order.assignments:
            t = LedgerTotals.of(self.loader.assignment_ledger(assignment))
            any_review = any_review or (t.approved + t.rejected) > 0
            all_complete = all_complete and t.qc_complete
            totals.allocated += t.allocated
            totals.picked += t.picked
            totals.approved += t.approved
            totals.rejected += t.rejected

        if not any_review:
            status = QCStatus.PENDING
        elif all_complete:
            status = QCStatus.COMPLETED
        else:
            status = QCStatus.PARTIAL

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_name": order.customer_name,
            "batches": len(order.assignments),
            "allocated": totals.allocated,
            "picked": totals.picked,
            "approved": totals.approved,
            "rejected": totals.rejected,
            "awaiting_review": totals.awaiting_review,
            "qc_status": status,
        }

    def get_order_summary(self, order_id: int) -> dict:
        return self.order_summary(self.loader.get_order(order_id))

    def order_qc_status(self, order_id: int) -> QCStatus:
        return self.get_order_summary(order_id)["qc_status"]

    def list_qc_orders(self, status: Optional[QCStatus] = None) -> List[dict]:
        """Orders with at least one picked unit, optionally filtered by QC status."""
        orders = (
            self.db.query(Order)
            .join(Order.assignments)
            .options(
                selectinload(Order.assignments).selectinload(
                    OrderBatchAssignment.size_distributions
                )
            )
            .distinct()
            .order_by(Order.id.desc())
            .all()
        )
        result = []
        for order in orders:
            summary = self.order_summary(order)
            if summary["picked"] <= 0:
                continue
            if status is not None and summary["qc_status"] != status:
                continue
            result.append(summary)
        return result

    # ==================== Sheets ====================

    def get_review_sheet(self, assignment_id: int) -> dict:
        """Per-size review progress plus the review history of an assignment."""
        assignment = self.loader.get_assignment(assignment_id)
        ledgers = self.loader.assignment_ledger(assignment)
        totals = LedgerTotals.of(ledgers)
        history = (
            self.db.query(QCReview)
            .filter(QCReview.order_batch_assignment_id == assignment.id)
            .order_by(QCReview.id)
            .all()
        )
        return {
            "assignment_id": assignment.id,
            "order_id": assignment.order_id,
            "order_number": assignment.order.order_number,
            "batch_id": assignment.batch_id,
            "batch_name": assignment.batch.batch_name,
            "qc_complete": totals.qc_complete,
            "sizes": [
                {
                    "size_name": size,
                    "picked": ledgers[size].picked,
                    "approved": ledgers[size].approved,
                    "rejected": ledgers[size].rejected,
                    "reviewable": ledgers[size].awaiting_review,
                    "qc_complete": ledgers[size].qc_complete,
                    "version": assignment.size_row(size).version,
                }
                for size in sort_sizes(ledgers)
            ],
            "history": [
                {
                    "id": r.id,
                    "size_name": r.size_name,
                    "approved_quantity": r.approved_quantity,
                    "rejected_quantity": r.rejected_quantity,
                    "remarks": r.remarks,
                    "reviewed_by": r.reviewed_by,
                    "created_at": r.created_at.isoformat() if r.created_at else None,
                }
                for r in history
            ],
        }

    def rejection_details(self, batch_id: int) -> List[dict]:
        """Every review with rejected units for a batch."""
        if self.db.get(Batch, batch_id) is None:
            raise NotFoundError("Batch", batch_id)
        rows = (
            self.db.query(QCReview, OrderBatchAssignment, Order)
            .join(OrderBatchAssignment, QCReview.order_batch_assignment_id == OrderBatchAssignment.id)
            .join(Order, OrderBatchAssignment.order_id == Order.id)
            .filter(OrderBatchAssignment.batch_id == batch_id, QCReview.rejected_quantity > 0)
            .order_by(QCReview.id)
            .all()
        )
        details = [
            {
                "review_id": review.id,
                "assignment_id": assignment.id,
                "order_id": order.id,
                "order_number": order.order_number,
                "size_name": review.size_name,
                "rejected_quantity": review.rejected_quantity,
                "remarks": review.remarks,
                "reviewed_by": review.reviewed_by,
                "created_at": review.created_at.isoformat() if review.created_at else None,
            }
            for review, assignment, order in rows
        ]
        details.sort(key=lambda d: (d["order_number"], size_sort_key(d["size_name"])))
        return details
