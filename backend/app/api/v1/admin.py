"""Admin endpoints: approval override, company policy and claim statistics.

  POST /admin/claims/{claim_id}/override
  GET  /admin/company/policy
  PUT  /admin/company/policy
  GET  /admin/stats
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.deps import require_role
from app.db.session import get_sync_session
from app.schemas.claim import ClaimOut, ClaimStatistics, OverrideRequest
from app.schemas.policy import CompanyPolicyOut, CompanyPolicyUpdate
from app.services import approval as approval_svc
from app.services import claims as claims_svc
from app.services import company_policy as policy_svc

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Override ───

@router.post(
    "/claims/{claim_id}/override",
    response_model=ClaimOut,
    summary="Force a final decision on an open claim (ADMIN)",
)
def override_claim(
    claim_id: uuid.UUID,
    body: OverrideRequest,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    try:
        claim = approval_svc.override_act(
            db=db,
            claim_id=claim_id,
            admin_id=current_user.id,
            decision=body.decision,
            reason=body.reason,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return ClaimOut.model_validate(claim)


# ─── Company policy ───

def _policy_out(company, policy) -> CompanyPolicyOut:
    return CompanyPolicyOut(company_id=company.id, name=company.name, **policy.model_dump())


@router.get(
    "/company/policy",
    response_model=CompanyPolicyOut,
    summary="Get the caller's company approval policy (ADMIN)",
)
def get_company_policy(
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    company, policy = policy_svc.get_company_policy(db, current_user.company_id)
    return _policy_out(company, policy)


@router.put(
    "/company/policy",
    response_model=CompanyPolicyOut,
    summary="Update the caller's company approval policy (ADMIN)",
)
def update_company_policy(
    body: CompanyPolicyUpdate,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    company, policy = policy_svc.update_company_policy(db, current_user.company_id, body, current_user)
    return _policy_out(company, policy)


# ─── Statistics ───

@router.get(
    "/stats",
    response_model=ClaimStatistics,
    summary="Claim counts by state and approved totals for the caller's company (ADMIN)",
)
def get_claim_statistics(
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    return claims_svc.claim_statistics(db, current_user.company_id)
