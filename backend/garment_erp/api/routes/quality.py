"""QC review routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from garment_erp.core.rate_limit import limiter
from garment_erp.core.responses import list_response
from garment_erp.core.validators import PositiveIntId
from garment_erp.db.session import DbSession
from garment_erp.schemas.quality import ReviewSubmit
from garment_erp.services.qc_service import QCService, QCStatus, ReviewEntry

router = APIRouter()


@router.get("/orders")
@limiter.limit("60/minute")
def list_qc_orders(
    request: Request,
    db: DbSession,
    qc_status: Optional[QCStatus] = Query(None, alias="status"),
):
    """Picked orders with QC totals; filter by pending, partial or completed."""
    return list_response(QCService(db).list_qc_orders(qc_status))


@router.get("/orders/{order_id}/status")
@limiter.limit("60/minute")
def get_order_qc_status(request: Request, order_id: PositiveIntId, db: DbSession):
    return QCService(db).get_order_summary(order_id)


@router.get("/assignments/{assignment_id}")
@limiter.limit("60/minute")
def get_review_sheet(request: Request, assignment_id: PositiveIntId, db: DbSession):
    return QCService(db).get_review_sheet(assignment_id)


@router.post("/assignments/{assignment_id}/reviews", status_code=status.HTTP_201_CREATED)
@limiter.limit("60/minute")
def submit_reviews(
    request: Request,
    assignment_id: PositiveIntId,
    body: ReviewSubmit,
    db: DbSession,
):
    """Append QC reviews; 422 if approved + rejected would exceed picked."""
    service = QCService(db)
    entries = [
        ReviewEntry(
            size_name=e.size_name,
            approved=e.approved,
            rejected=e.rejected,
            remarks=e.remarks,
            expected_version=e.expected_version,
        )
        for e in body.entries
    ]
    reviews = service.submit_reviews(assignment_id, entries, reviewed_by=body.reviewed_by)
    return {
        "reviews": [
            {
                "id": r.id,
                "size_name": r.size_name,
                "approved_quantity": r.approved_quantity,
                "rejected_quantity": r.rejected_quantity,
            }
            for r in reviews
        ],
        "sheet": service.get_review_sheet(assignment_id),
    }
