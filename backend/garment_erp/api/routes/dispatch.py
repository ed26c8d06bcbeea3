"""Dispatch and delivery challan routes."""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from garment_erp.core.rate_limit import limiter
from garment_erp.core.responses import list_response
from garment_erp.core.validators import PositiveIntId
from garment_erp.db.session import DbSession
from garment_erp.models.dispatch import DispatchStatus
from garment_erp.schemas.dispatch import ChallanCreate, DeliverRequest, ShipRequest
from garment_erp.services.dispatch_service import DispatchService

router = APIRouter()


@router.get("/orders")
@limiter.limit("60/minute")
def list_dispatch_orders(
    request: Request,
    db: DbSession,
    include_completed: bool = False,
):
    """Orders with approved quantity and what is still to be shipped."""
    return list_response(DispatchService(db).list_dispatch_orders(include_completed))


@router.get("/orders/{order_id}/remaining")
@limiter.limit("60/minute")
def get_remaining(request: Request, order_id: PositiveIntId, db: DbSession):
    return DispatchService(db).get_dispatch_summary(order_id)


@router.post("/orders/{order_id}/challans", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def generate_challan(
    request: Request,
    order_id: PositiveIntId,
    body: ChallanCreate,
    db: DbSession,
):
    """Create a pending challan; quantities above the remainder are capped or rejected."""
    service = DispatchService(db)
    dispatch = service.generate_challan(
        order_id,
        body.quantities,
        delivery_address=body.delivery_address,
        estimated_delivery=body.estimated_delivery,
        courier_name=body.courier_name,
        created_by=body.created_by,
        expected_version=body.expected_version,
    )
    return service.get_challan(dispatch.id)


@router.get("/challans")
@limiter.limit("60/minute")
def list_challans(
    request: Request,
    db: DbSession,
    challan_status: Optional[DispatchStatus] = Query(None, alias="status"),
):
    service = DispatchService(db)
    return list_response([service.challan_to_dict(d) for d in service.list_challans(challan_status)])


@router.get("/challans/{dispatch_order_id}")
@limiter.limit("60/minute")
def get_challan(request: Request, dispatch_order_id: PositiveIntId, db: DbSession):
    return DispatchService(db).get_challan(dispatch_order_id)


@router.post("/challans/{dispatch_order_id}/ship")
@limiter.limit("30/minute")
def mark_dispatched(
    request: Request,
    dispatch_order_id: PositiveIntId,
    body: ShipRequest,
    db: DbSession,
):
    """Confirm courier details; the order becomes dispatched or partial_dispatched."""
    service = DispatchService(db)
    dispatch = service.mark_dispatched(
        dispatch_order_id,
        body.courier_name,
        tracking_number=body.tracking_number,
        expected_version=body.expected_version,
    )
    return {
        **service.challan_to_dict(dispatch),
        "order_status": dispatch.order.status,
    }


@router.post("/challans/{dispatch_order_id}/deliver")
@limiter.limit("30/minute")
def mark_delivered(
    request: Request,
    dispatch_order_id: PositiveIntId,
    body: DeliverRequest,
    db: DbSession,
):
    service = DispatchService(db)
    dispatch = service.mark_delivered(
        dispatch_order_id,
        actual_delivery=body.actual_delivery,
        expected_version=body.expected_version,
    )
    return service.challan_to_dict(dispatch)
