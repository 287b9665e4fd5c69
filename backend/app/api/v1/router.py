from fastapi import APIRouter

from app.api.v1 import admin, approval_rules, approvals, claims

api_router = APIRouter()

api_router.include_router(claims.router, prefix="/claims", tags=["claims"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(approval_rules.router, prefix="/approval-rules", tags=["approval-rules"])
