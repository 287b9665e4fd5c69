"""Approval rule endpoints, scoped to the caller's company."""
import uuid
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.deps import require_role
from app.db.session import get_sync_session
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep
from app.schemas.policy import (
    ApprovalRuleIn,
    ApprovalRuleOut,
    ApprovalRuleUpdate,
)

router = APIRouter()


def _get_rule(db: Session, rule_id: uuid.UUID, company_id: uuid.UUID) -> ApprovalRule:
    rule = db.execute(
        select(ApprovalRule)
        .where(ApprovalRule.id == rule_id, ApprovalRule.company_id == company_id)
        .options(selectinload(ApprovalRule.steps))
        .execution_options(populate_existing=True)
    ).scalars().first()
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rule not found.")
    return rule


def _steps(body: ApprovalRuleIn) -> list[ApprovalRuleStep]:
    return [ApprovalRuleStep(**step.model_dump()) for step in body.steps]


@router.get(
    "",
    response_model=list[ApprovalRuleOut],
    summary="List active approval rules (ADMIN, MANAGER)",
)
def list_rules(
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin", "manager")),
):
    result = db.execute(
        select(ApprovalRule)
        .where(ApprovalRule.company_id == current_user.company_id, ApprovalRule.is_active.is_(True))
        .options(selectinload(ApprovalRule.steps))
        .order_by(ApprovalRule.min_amount, ApprovalRule.name)
    )
    return [ApprovalRuleOut.model_validate(r) for r in result.scalars().all()]


@router.post(
    "",
    response_model=ApprovalRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an approval rule (ADMIN)",
)
def create_rule(
    body: ApprovalRuleIn,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    rule = ApprovalRule(
        company_id=current_user.company_id,
        **body.model_dump(exclude={"steps"}),
        steps=_steps(body),
    )
    db.add(rule)
    db.commit()
    return ApprovalRuleOut.model_validate(_get_rule(db, rule.id, current_user.company_id))


@router.put(
    "/{rule_id}",
    response_model=ApprovalRuleOut,
    summary="Update an approval rule (ADMIN)",
)
def update_rule(
    rule_id: uuid.UUID,
    body: ApprovalRuleUpdate,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    rule = _get_rule(db, rule_id, current_user.company_id)

    # Re-validate the merged rule so partial updates cannot break invariants.
    merged = {
        "name": rule.name,
        "min_amount": rule.min_amount,
        "max_amount": rule.max_amount,
        "categories": rule.categories,
        "departments": rule.departments,
        "is_active": rule.is_active,
        "steps": [
            {
                "sequence": s.sequence,
                "approver_role": s.approver_role,
                "is_manager_approver": s.is_manager_approver,
                "approval_limit": Decimal(str(s.approval_limit)) if s.approval_limit is not None else None,
                "required": s.required,
            }
            for s in rule.steps
        ],
    }
    merged.update(body.model_dump(exclude_unset=True))
    try:
        validated = ApprovalRuleIn.model_validate(merged)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        )

    for field, value in validated.model_dump(exclude={"steps"}).items():
        setattr(rule, field, value)
    if body.steps is not None:
        rule.steps.clear()
        db.flush()
        rule.steps.extend(_steps(validated))

    db.commit()
    return ApprovalRuleOut.model_validate(_get_rule(db, rule.id, current_user.company_id))


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete an approval rule (ADMIN)",
)
def delete_rule(
    rule_id: uuid.UUID,
    db: Annotated[Session, Depends(get_sync_session)],
    current_user=Depends(require_role("admin")),
):
    rule = _get_rule(db, rule_id, current_user.company_id)
    rule.is_active = False
    db.commit()
