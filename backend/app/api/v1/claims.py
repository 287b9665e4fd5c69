"""Claim submission endpoints.

  POST   /claims                    submit a claim
  GET    /claims                    the caller's own claims
  GET    /claims/{claim_id}         detail with chain and ledger
  GET    /claims/{claim_id}/ledger  approval actions only
  DELETE /claims/{claim_id}         withdraw a pending claim
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.db.session import get_sync_session
from app.schemas.claim import (
    ApprovalActionOut,
    ClaimListResponse,
    ClaimOut,
    ClaimSubmitRequest,
)
from app.services import claims as claims_svc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ClaimOut,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense claim",
)
def submit_claim(
    body: ClaimSubmitRequest,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(get_current_user),
):
    try:
        claim = claims_svc.submit_claim(
            db=db,
            submitter_id=current_user.id,
            amount=body.amount,
            currency=body.currency,
            category=body.category,
            description=body.description,
            expense_date=body.expense_date,
            department=body.department,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return ClaimOut.model_validate(claim)


@router.get(
    "",
    response_model=ClaimListResponse,
    summary="List the current user's claims",
)
def list_my_claims(
    db: Annotated[Session, Depends(get_sync_session)],
    status_filter: str | None = Query(None, alias="status", description="Filter by claim status"),
    current_user=Depends(get_current_user),
):
    items = [
        ClaimOut.model_validate(c)
        for c in claims_svc.list_submitted(db, current_user.id, status=status_filter)
    ]
    return ClaimListResponse(items=items, total=len(items))


@router.get(
    "/{claim_id}",
    response_model=ClaimOut,
    summary="Get claim detail",
)
def get_claim(
    claim_id: uuid.UUID,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(get_current_user),
):
    return ClaimOut.model_validate(claims_svc.get_claim(db, claim_id, viewer=current_user))


@router.get(
    "/{claim_id}/ledger",
    response_model=list[ApprovalActionOut],
    summary="Get the approval history of a claim",
)
def get_claim_ledger(
    claim_id: uuid.UUID,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(get_current_user),
):
    claims_svc.get_claim(db, claim_id, viewer=current_user)
    return [ApprovalActionOut.model_validate(a) for a in claims_svc.get_ledger(db, claim_id)]


@router.delete(
    "/{claim_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Withdraw a pending claim (submitter only)",
)
def withdraw_claim(
    claim_id: uuid.UUID,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(get_current_user),
):
    claims_svc.withdraw_claim(db, claim_id, current_user.id)
