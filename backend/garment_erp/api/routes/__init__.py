"""API routes."""

from fastapi import APIRouter

from garment_erp.api.routes import assignments, batches, dispatch, orders, quality

api_router = APIRouter()

api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(batches.router, prefix="/batches", tags=["batches"])
api_router.include_router(assignments.router, prefix="/assignments", tags=["picking"])
api_router.include_router(quality.router, prefix="/qc", tags=["qc"])
api_router.include_router(dispatch.router, prefix="/dispatch", tags=["dispatch"])
