"""Batch roster, pick summary and rejection routes."""

from fastapi import APIRouter, Request

from garment_erp.core.rate_limit import limiter
from garment_erp.core.responses import list_response
from garment_erp.core.validators import PositiveIntId
from garment_erp.db.session import DbSession
from garment_erp.schemas.distribution import BatchResponse
from garment_erp.services.distribution_service import DistributionService
from garment_erp.services.picking_service import PickingService
from garment_erp.services.qc_service import QCService

router = APIRouter()


@router.get("/available")
@limiter.limit("60/minute")
def list_available_batches(request: Request, db: DbSession):
    """Active batches with spare capacity."""
    batches = DistributionService(db).list_available_batches()
    return list_response([BatchResponse.model_validate(b) for b in batches])


@router.get("/pick-summary")
@limiter.limit("60/minute")
def get_pick_summary(request: Request, db: DbSession):
    """Assigned, picked and rejected totals per active batch."""
    return list_response(PickingService(db).batch_pick_summary())


@router.get("/{batch_id}/rejections")
@limiter.limit("60/minute")
def get_rejections(request: Request, batch_id: PositiveIntId, db: DbSession):
    """QC rejections (with remarks) for a batch."""
    return list_response(QCService(db).rejection_details(batch_id))
