"""
API v1 Router

Aggregates all API v1 endpoints.
"""

from fastapi import APIRouter

from realaist.api.v1 import admin, analytics, campaigns, payments, roi

router = APIRouter()

# Include sub-routers
router.include_router(campaigns.router, prefix="/campaigns", tags=["Campaigns"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
router.include_router(roi.router, prefix="/roi", tags=["ROI Preview"])
