"""Pick recording and reassignment routes for batch assignments."""

from dataclasses import asdict

from fastapi import APIRouter, Request

from garment_erp.api.routes.orders import _assignment_to_response
from garment_erp.core.rate_limit import limiter
from garment_erp.core.validators import PositiveIntId
from garment_erp.db.session import DbSession
from garment_erp.schemas.distribution import AssignmentResponse, ReassignRequest
from garment_erp.schemas.picking import PickCreate, PickResponse
from garment_erp.services.distribution_service import DistributionService
from garment_erp.services.picking_service import PickingService

router = APIRouter()


@router.get("/{assignment_id}/pick-sheet")
@limiter.limit("60/minute")
def get_pick_sheet(request: Request, assignment_id: PositiveIntId, db: DbSession):
    return PickingService(db).get_pick_sheet(assignment_id)


@router.post("/{assignment_id}/picks", response_model=PickResponse)
@limiter.limit("120/minute")
def record_pick(
    request: Request,
    assignment_id: PositiveIntId,
    body: PickCreate,
    db: DbSession,
):
    """Add a pick event for one size.

    Out-of-range results are clamped (``clamped`` is true in the response)
    or rejected with 422, depending on the configured quantity policy.
    """
    result = PickingService(db).record_pick(
        assignment_id, body.size_name, body.delta, expected_version=body.expected_version
    )
    return PickResponse(**asdict(result))


@router.post("/{assignment_id}/reassign", response_model=AssignmentResponse)
@limiter.limit("30/minute")
def reassign_batch(
    request: Request,
    assignment_id: PositiveIntId,
    body: ReassignRequest,
    db: DbSession,
):
    """Move unpicked quantity to another batch."""
    target = DistributionService(db).reassign(
        assignment_id,
        body.new_batch_id,
        quantities=body.quantities,
        reassigned_by=body.reassigned_by,
        expected_version=body.expected_version,
    )
    return _assignment_to_response(target)
