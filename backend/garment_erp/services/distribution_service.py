"""Batch distribution: splitting an order's size quantities across batches.

Saving a distribution is a full replace. Every existing assignment of the
order is deleted and the new per-batch, per-size rows are inserted in the
same transaction. Once picking has started, work is moved with
``reassign`` instead, so that pick and QC history stays attached to its
assignment.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from garment_erp.core.metrics import metrics
from garment_erp.db.session import atomic
from garment_erp.models.assignment import OrderBatchAssignment, OrderBatchSizeDistribution
from garment_erp.models.batch import Batch, BatchStatus
from garment_erp.models.order import OrderStatus
from garment_erp.models.quality import QCReview
from garment_erp.services.errors import NotFoundError, ValidationError
from garment_erp.services.ledger import LedgerLoader
from garment_erp.services.sizes import sort_sizes, sorted_by_size

logger = logging.getLogger(__name__)

# batch_id -> size_name -> quantity
Allocations = Mapping[int, Mapping[str, int]]


def compute_remaining(
    size_ledger: Mapping[str, int],
    existing_distributions: Allocations,
) -> Dict[str, int]:
    """Ordered minus allocated across all batches, per size."""
    remaining = dict(size_ledger)
    for sizes in existing_distributions.values():
        for size_name, qty in sizes.items():
            remaining[size_name] = remaining.get(size_name, 0) - qty
    return remaining


def allocation_bounds(
    size_ledger: Mapping[str, int],
    existing_distributions: Allocations,
    batch_id: int,
    size_name: str,
) -> Tuple[int, int]:
    """Valid input range for one batch/size cell.

    The batch's own current value is added back so editing a cell never
    counts that batch twice.
    """
    remaining = compute_remaining(size_ledger, existing_distributions).get(size_name, 0)
    current = existing_distributions.get(batch_id, {}).get(size_name, 0)
    return 0, max(0, remaining + current)


def clamp_allocation(
    size_ledger: Mapping[str, int],
    existing_distributions: Allocations,
    batch_id: int,
    size_name: str,
    requested: int,
) -> int:
    lower, upper = allocation_bounds(size_ledger, existing_distributions, batch_id, size_name)
    return min(max(requested, lower), upper)


def validate_distribution(size_ledger: Mapping[str, int], allocations: Allocations) -> None:
    """Accept only a distribution that allocates every ordered unit exactly once."""
    for batch_id, sizes in allocations.items():
        for size_name, qty in sizes.items():
            if qty < 0:
                raise ValidationError(
                    f"Batch {batch_id} has a negative quantity for size {size_name}",
                    size_name=size_name,
                )
            if qty and size_name not in size_ledger:
                raise ValidationError(
                    f"Size {size_name} is not part of this order", size_name=size_name
                )

    remaining = compute_remaining(size_ledger, allocations)
    for size_name in sort_sizes(remaining):
        left = remaining[size_name]
        if left > 0:
            raise ValidationError(f"Size {size_name} has {left} remaining", size_name=size_name)
        if left < 0:
            raise ValidationError(
                f"Size {size_name} is over-allocated by {-left}", size_name=size_name
            )


class DistributionService:
    """Reads and writes an order's batch distribution."""

    def __init__(self, db: Session):
        self.db = db
        self.loader = LedgerLoader(db)

    def get_distribution(self, order_id: int) -> dict:
        """Size ledger, remaining per size and the current allocations."""
        order = self.loader.get_order(order_id)
        size_ledger = order.size_ledger
        existing = self._existing_allocations(order.assignments)
        remaining = compute_remaining(size_ledger, existing)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "version": order.version,
            "sizes": [
                {
                    "size_name": size,
                    "total_quantity": size_ledger[size],
                    "remaining": remaining.get(size, 0),
                }
                for size in sort_sizes(size_ledger)
            ],
            "assignments": [
                {
                    "assignment_id": a.id,
                    "batch_id": a.batch_id,
                    "batch_name": a.batch.batch_name if a.batch else None,
                    "total_quantity": a.total_quantity,
                    "version": a.version,
                    "sizes": dict(
                        sorted_by_size({row.size_name: row.quantity for row in a.size_distributions})
                    ),
                }
                for a in order.assignments
            ],
        }

    def list_available_batches(self) -> List[Batch]:
        """Active batches that still have capacity."""
        batches = (
            self.db.query(Batch)
            .filter(Batch.status == BatchStatus.ACTIVE)
            .order_by(Batch.batch_name)
            .all()
        )
        return [b for b in batches if b.available_capacity > 0]

    def save_distribution(
        self,
        order_id: int,
        allocations: Allocations,
        assigned_by: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> List[OrderBatchAssignment]:
        """Replace the order's batch assignments with *allocations*."""
        order = self.loader.get_order(order_id)
        validate_distribution(order.size_ledger, allocations)

        if any(row.picked() > 0 for a in order.assignments for row in a.size_distributions):
            raise ValidationError(
                f"Order {order.order_number} has picked quantities; "
                "reassign batches instead of redistributing"
            )

        wanted = {
            batch_id: {size: qty for size, qty in sizes.items() if qty > 0}
            for batch_id, sizes in allocations.items()
        }
        wanted = {batch_id: sizes for batch_id, sizes in wanted.items() if sizes}
        batches = self._get_active_batches(list(wanted))

        with atomic(self.db):
            order.claim_version(self.db, expected_version)
            # A pick committed since the check above fails one of these claims
            for assignment in order.assignments:
                assignment.claim_version(self.db)
                for row in assignment.size_distributions:
                    row.claim_version(self.db)

            # Deletes must reach the database before the replacement rows,
            # which reuse the same (order_id, batch_id) keys
            order.assignments.clear()
            self.db.flush()

            created = []
            for batch_id, sizes in wanted.items():
                assignment = OrderBatchAssignment(
                    order_id=order.id,
                    batch_id=batches[batch_id].id,
                    assigned_by_name=assigned_by,
                )
                for size_name in sort_sizes(sizes):
                    assignment.size_distributions.append(
                        OrderBatchSizeDistribution(
                            size_name=size_name,
                            quantity=sizes[size_name],
                            picked_quantity=0,
                        )
                    )
                assignment.recalculate_total()
                order.assignments.append(assignment)
                created.append(assignment)

            order.advance_status(OrderStatus.IN_PRODUCTION)

        metrics.record_event("distributions_saved")
        logger.info(
            f"Distributed order {order.order_number} across {len(created)} batches "
            f"(by {assigned_by or 'unknown'})"
        )
        return created

    def reassign(
        self,
        assignment_id: int,
        new_batch_id: int,
        quantities: Optional[Mapping[str, int]] = None,
        reassigned_by: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> OrderBatchAssignment:
        """Move unpicked quantity from one assignment to another batch.

        ``quantities`` maps size to the amount to move; ``None`` moves
        everything not yet picked.
        """
        source = self.loader.get_assignment(assignment_id)
        if source.batch_id == new_batch_id:
            raise ValidationError("Select a different batch to reassign to")
        self._get_active_batches([new_batch_id])

        left = {
            size: ledger.remaining_to_pick
            for size, ledger in self.loader.assignment_ledger(source).items()
        }
        if quantities is None:
            moves = {size: qty for size, qty in left.items() if qty > 0}
        else:
            moves = {}
            for size_name, qty in quantities.items():
                if not qty:
                    continue
                if size_name not in left:
                    raise ValidationError(
                        f"Size {size_name} is not allocated to this batch", size_name=size_name
                    )
                if qty < 0 or qty > left[size_name]:
                    raise ValidationError(
                        f"Size {size_name} has {left[size_name]} left to reassign, got {qty}",
                        size_name=size_name,
                    )
                moves[size_name] = qty
        if not moves:
            raise ValidationError("Nothing left to reassign")
        order_id, old_batch_id = source.order_id, source.batch_id

        with atomic(self.db):
            source.claim_version(self.db, expected_version)

            target = (
                self.db.query(OrderBatchAssignment)
                .filter(
                    OrderBatchAssignment.order_id == source.order_id,
                    OrderBatchAssignment.batch_id == new_batch_id,
                )
                .first()
            )
            if target is None:
                target = OrderBatchAssignment(
                    order_id=source.order_id,
                    batch_id=new_batch_id,
                    assigned_by_name=reassigned_by,
                )
                self.db.add(target)
            else:
                target.claim_version(self.db)

            for size_name in sort_sizes(moves):
                qty = moves[size_name]
                row = source.size_row(size_name)
                row.claim_version(self.db)
                row.quantity -= qty
                if row.quantity == 0 and row.picked() == 0:
                    source.size_distributions.remove(row)

                target_row = target.size_row(size_name)
                if target_row is None:
                    target.size_distributions.append(
                        OrderBatchSizeDistribution(
                            size_name=size_name, quantity=qty, picked_quantity=0
                        )
                    )
                else:
                    target_row.claim_version(self.db)
                    target_row.quantity += qty

            source.recalculate_total()
            target.recalculate_total()

            has_reviews = (
                self.db.query(QCReview.id)
                .filter(QCReview.order_batch_assignment_id == source.id)
                .first()
                is not None
            )
            if not source.size_distributions and not has_reviews:
                self.db.delete(source)

        metrics.record_event("batches_reassigned")
        logger.info(
            f"Reassigned {sum(moves.values())} units of order {order_id} "
            f"from batch {old_batch_id} to batch {new_batch_id}"
        )
        return target

    # ==================== Helpers ====================

    @staticmethod
    def _existing_allocations(assignments) -> Dict[int, Dict[str, int]]:
        return {
            a.batch_id: {row.size_name: row.quantity for row in a.size_distributions}
            for a in assignments
        }

    def _get_active_batches(self, batch_ids: List[int]) -> Dict[int, Batch]:
        if not batch_ids:
            return {}
        batches = {b.id: b for b in self.db.query(Batch).filter(Batch.id.in_(batch_ids)).all()}
        for batch_id in batch_ids:
            batch = batches.get(batch_id)
            if batch is None:
                raise NotFoundError("Batch", batch_id)
            if not batch.is_active:
                raise ValidationError(f"Batch {batch.batch_name} is not active")
        return batches
