"""Company approval policy administration.

Edits apply to claims submitted afterwards only: each claim keeps the chain
and conditional rules it was created with.
"""
import logging
import uuid

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidPolicyError, NotAuthorized, RuleResolutionError
from app.models.company import Company
from app.schemas.policy import DEFAULT_THRESHOLDS, CompanyPolicy, CompanyPolicyUpdate
from app.services import audit as audit_svc
from app.services import directory

logger = logging.getLogger(__name__)


def _check_specific_approver(db: Session, policy: CompanyPolicy, company_id: uuid.UUID) -> None:
    rule = policy.conditional_rules.specific_approver_rule
    if not rule.enabled:
        return
    approver = directory.get_user(db, rule.approver_id)
    if approver is None or approver.company_id != company_id:
        raise InvalidPolicyError("specific_approver_rule.approver_id must be a user of this company.")


def create_company(
    db: Session,
    name: str,
    base_currency: str | None = None,
    thresholds: list | None = None,
    **policy_fields,
) -> Company:
    """Create a company with a validated policy.

    Omitting `thresholds` installs the default manager/admin tiers; an
    explicit empty list keeps the company threshold-free. A new company has
    no users yet, so an enabled specific-approver rule is refused here and
    must be switched on through update_company_policy.
    """
    try:
        policy = CompanyPolicy(
            base_currency=base_currency or settings.DEFAULT_BASE_CURRENCY,
            thresholds=DEFAULT_THRESHOLDS if thresholds is None else thresholds,
            **policy_fields,
        )
    except ValidationError as exc:
        raise InvalidPolicyError(str(exc)) from exc

    company = Company(name=name, **policy.column_values())
    db.add(company)
    db.flush()
    try:
        _check_specific_approver(db, policy, company.id)
    except InvalidPolicyError:
        db.rollback()
        raise
    db.commit()
    logger.info("Company created: %s (%s) base=%s", company.id, name, company.base_currency)
    return company


def get_company_policy(db: Session, company_id: uuid.UUID) -> tuple[Company, CompanyPolicy]:
    company = directory.get_company(db, company_id)
    if company is None:
        raise RuleResolutionError(f"Company {company_id} not found.")
    try:
        return company, CompanyPolicy.from_company(company)
    except ValidationError as exc:
        raise InvalidPolicyError(str(exc)) from exc


def update_company_policy(
    db: Session,
    company_id: uuid.UUID,
    update: CompanyPolicyUpdate,
    actor,
) -> tuple[Company, CompanyPolicy]:
    """Apply a partial policy update as an admin of the company."""
    if actor.role != "admin" or actor.company_id != company_id:
        raise NotAuthorized("Only an admin of this company may change its approval policy.")

    company, current = get_company_policy(db, company_id)
    merged = current.model_dump()
    merged.update(update.model_dump(exclude_unset=True, exclude_none=True))
    try:
        new_policy = CompanyPolicy.model_validate(merged)
    except ValidationError as exc:
        raise InvalidPolicyError(str(exc)) from exc

    _check_specific_approver(db, new_policy, company_id)

    before = current.model_dump(mode="json")
    for column, value in new_policy.column_values().items():
        setattr(company, column, value)

    audit_svc.log(
        db=db,
        action="company.policy_updated",
        entity_type="company",
        entity_id=company.id,
        actor_id=actor.id,
        actor_email=actor.email,
        company_id=company.id,
        before=before,
        after=new_policy.model_dump(mode="json"),
    )
    db.commit()
    logger.info("Company policy updated: company=%s actor=%s", company.id, actor.id)
    return company, new_policy
