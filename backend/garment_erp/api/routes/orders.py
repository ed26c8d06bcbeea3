"""Order ledger and batch distribution routes."""

from fastapi import APIRouter, Request

from garment_erp.core.rate_limit import limiter
from garment_erp.core.responses import list_response
from garment_erp.core.validators import PositiveIntId
from garment_erp.db.session import DbSession
from garment_erp.models.assignment import OrderBatchAssignment
from garment_erp.schemas.distribution import AssignmentResponse, DistributionSave
from garment_erp.services.distribution_service import DistributionService
from garment_erp.services.ledger import LedgerLoader, ledger_rows

router = APIRouter()


def _assignment_to_response(assignment: OrderBatchAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        order_id=assignment.order_id,
        batch_id=assignment.batch_id,
        total_quantity=assignment.total_quantity,
        assigned_by_name=assignment.assigned_by_name,
        version=assignment.version,
        sizes={row.size_name: row.quantity for row in assignment.size_distributions},
    )


@router.get("/{order_id}/ledger")
@limiter.limit("60/minute")
def get_order_ledger(request: Request, order_id: PositiveIntId, db: DbSession):
    """Per-size ordered, allocated, picked, reviewed and dispatched quantities."""
    return list_response(ledger_rows(LedgerLoader(db).order_ledger(order_id)))


@router.get("/{order_id}/distribution")
@limiter.limit("60/minute")
def get_distribution(request: Request, order_id: PositiveIntId, db: DbSession):
    """Size ledger with remaining quantities and the current batch allocations."""
    return DistributionService(db).get_distribution(order_id)


@router.put("/{order_id}/distribution")
@limiter.limit("30/minute")
def save_distribution(
    request: Request,
    order_id: PositiveIntId,
    body: DistributionSave,
    db: DbSession,
):
    """Replace the order's batch distribution.

    Every ordered unit must be allocated; otherwise 422 with the first size
    that still has a remainder.
    """
    created = DistributionService(db).save_distribution(
        order_id,
        body.allocations,
        assigned_by=body.assigned_by,
        expected_version=body.expected_version,
    )
    return list_response([_assignment_to_response(a) for a in created])
