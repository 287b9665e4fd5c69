"""Approval workflow API endpoints.

  GET  /approvals                    claims waiting on the current user
  POST /approvals/{claim_id}/approve
  POST /approvals/{claim_id}/reject
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.deps import require_role
from app.db.session import get_sync_session
from app.models.user import APPROVER_ROLES
from app.schemas.claim import ApprovalDecisionRequest, ClaimListResponse, ClaimOut
from app.services import approval as approval_svc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=ClaimListResponse,
    summary="List claims awaiting the current user's decision",
)
def list_my_approvals(
    db: Annotated[Session, Depends(get_sync_session)],
    include_resolved: bool = Query(False, description="If true, return claims the user already acted on instead"),
    current_user=Depends(require_role(*APPROVER_ROLES)),
):
    if include_resolved:
        claims = approval_svc.list_decided_by(db, current_user.id)
    else:
        claims = approval_svc.list_actionable(db, current_user.id)
    items = [ClaimOut.model_validate(c) for c in claims]
    return ClaimListResponse(items=items, total=len(items))


def _decide(db: Session, claim_id: uuid.UUID, actor_id: uuid.UUID, decision: str, comment: str | None) -> ClaimOut:
    try:
        claim = approval_svc.act(
            db=db,
            claim_id=claim_id,
            actor_id=actor_id,
            decision=decision,
            comment=comment,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return ClaimOut.model_validate(claim)


@router.post(
    "/{claim_id}/approve",
    response_model=ClaimOut,
    summary="Approve the current step of a claim",
)
def approve_claim(
    claim_id: uuid.UUID,
    body: ApprovalDecisionRequest,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role(*APPROVER_ROLES)),
):
    return _decide(db, claim_id, current_user.id, "approved", body.comment)


@router.post(
    "/{claim_id}/reject",
    response_model=ClaimOut,
    summary="Reject a claim at its current step",
)
def reject_claim(
    claim_id: uuid.UUID,
    body: ApprovalDecisionRequest,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role(*APPROVER_ROLES)),
):
    return _decide(db, claim_id, current_user.id, "rejected", body.comment)
