"""Claim lifecycle service: submission, withdrawal, lookups.

All functions take a sync SQLAlchemy Session and own its transaction
boundary.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import (
    ClaimNotFound,
    ConcurrentModificationConflict,
    CurrencyConversionError,
    InvalidPolicyError,
    NotActionable,
    NotAuthorized,
    RuleResolutionError,
)
from app.models.approval_rule import ApprovalRule
from app.models.claim import CATEGORIES, OPEN_STATUSES, ApprovalAction, Claim, ClaimStep
from app.rules import chain_builder, rule_resolver
from app.schemas.claim import ClaimStatistics
from app.schemas.policy import CompanyPolicy
from app.services import audit as audit_svc
from app.services import directory, fx, notifications

logger = logging.getLogger(__name__)

VIEWER_ROLES = ("manager", "admin")


# ─── Loading ───

def load_claim(db: Session, claim_id: uuid.UUID) -> Claim:
    """Load a claim with its chain and ledger, bypassing stale identity-map state."""
    claim = db.execute(
        select(Claim)
        .where(Claim.id == claim_id)
        .options(selectinload(Claim.steps), selectinload(Claim.approvals))
        .execution_options(populate_existing=True)
    ).scalars().first()
    if claim is None:
        raise ClaimNotFound(f"Claim {claim_id} not found.")
    return claim


def load_company_policy(db: Session, company_id: uuid.UUID) -> CompanyPolicy:
    company = directory.get_company(db, company_id)
    if company is None:
        raise RuleResolutionError(f"Company {company_id} has no approval policy.")
    try:
        return CompanyPolicy.from_company(company)
    except ValidationError as exc:
        raise InvalidPolicyError(f"Company {company_id} policy is invalid: {exc}") from exc


def active_rules(db: Session, company_id: uuid.UUID) -> list[ApprovalRule]:
    stmt = (
        select(ApprovalRule)
        .where(ApprovalRule.company_id == company_id, ApprovalRule.is_active.is_(True))
        .options(selectinload(ApprovalRule.steps))
    )
    return list(db.execute(stmt).scalars().all())


# ─── Submit ───

def submit_claim(
    db: Session,
    submitter_id: uuid.UUID,
    amount: Decimal,
    currency: str,
    category: str,
    description: str,
    expense_date: date,
    department: str | None = None,
    normalizer: fx.CurrencyNormalizer | None = None,
) -> Claim:
    """Create a claim, freeze its approval chain, and notify the first approver.

    The base-currency amount is computed before anything is written; if the
    normalizer fails no claim is created. An empty chain approves the claim
    immediately (or raises when EMPTY_CHAIN_POLICY=error).

    Raises:
        NotAuthorized: Unknown or inactive submitter.
        RuleResolutionError: No company policy, or empty chain under the error policy.
        InvalidPolicyError: Stored company policy fails validation.
        CurrencyConversionError: The amount could not be normalised.
        ValueError: Non-positive amount or unknown category.
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValueError("Amount must be greater than 0.")
    if category not in CATEGORIES:
        raise ValueError(f"Unknown category '{category}'.")

    submitter = directory.get_user(db, submitter_id)
    if submitter is None or not submitter.is_active:
        raise NotAuthorized(f"User {submitter_id} cannot submit claims.")

    policy = load_company_policy(db, submitter.company_id)
    normalizer = normalizer or fx.get_normalizer()
    currency = currency.upper()
    converted = normalizer.convert(amount, currency, policy.base_currency)
    if converted <= 0:
        raise CurrencyConversionError(
            f"{amount} {currency} converts to {converted} {policy.base_currency}; nothing to approve."
        )

    facts = rule_resolver.ClaimFacts(
        converted_amount=converted,
        category=category,
        department=department or submitter.department,
    )
    resolved = rule_resolver.resolve(policy, active_rules(db, submitter.company_id), facts)
    chain = chain_builder.build(
        resolved,
        submitter=submitter,
        users=directory.list_company_users(db, submitter.company_id),
        amount=converted,
        department=facts.department,
    )

    if not chain and settings.EMPTY_CHAIN_POLICY == "error":
        raise RuleResolutionError(
            f"No approver could be assigned for a {converted} {policy.base_currency} {category} claim."
        )

    now = datetime.now(timezone.utc)
    claim = Claim(
        company_id=submitter.company_id,
        submitted_by=submitter.id,
        amount=amount,
        currency=currency,
        converted_amount=converted,
        base_currency=policy.base_currency,
        exchange_rate=(converted / amount).quantize(Decimal("0.00000001")),
        category=category,
        department=facts.department,
        description=description,
        expense_date=expense_date,
        approval_level=0,
        rule_id=resolved.rule_id,
        conditional_snapshot=policy.conditional_rules.model_dump(mode="json"),
    )
    if chain:
        claim.status = "pending"
        claim.current_approver_id = chain[0].approver_id
    else:
        claim.status = "approved"
        claim.current_approver_id = None
        claim.resolution = "auto"
        claim.decided_at = now
        logger.warning("submit_claim: empty approval chain for submitter %s; auto-approving", submitter.id)

    claim.steps = [
        ClaimStep(
            position=step.position,
            sequence=step.sequence,
            approver_id=step.approver_id,
            approver_role=step.approver_role,
            assignment=step.assignment.value,
        )
        for step in chain
    ]
    db.add(claim)

    try:
        db.flush()
        audit_svc.log(
            db=db,
            action="claim.submitted",
            entity_type="claim",
            entity_id=claim.id,
            actor_id=submitter.id,
            actor_email=submitter.email,
            company_id=submitter.company_id,
            after={
                "status": claim.status,
                "amount": str(amount),
                "currency": currency,
                "converted_amount": str(converted),
                "base_currency": policy.base_currency,
                "resolution_source": resolved.source.value,
                "chain": [str(s.approver_id) for s in chain],
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Claim submitted: claim=%s submitter=%s converted=%s %s source=%s steps=%d status=%s",
        claim.id, submitter.id, converted, policy.base_currency,
        resolved.source.value, len(chain), claim.status,
    )
    notifications.notify_transition(db, claim)
    return claim


# ─── Withdraw ───

def withdraw_claim(db: Session, claim_id: uuid.UUID, submitter_id: uuid.UUID) -> None:
    """Delete a still-pending claim on behalf of its submitter.

    Raises:
        ClaimNotFound, NotAuthorized, NotActionable,
        ConcurrentModificationConflict: An approver acted first.
    """
    claim = load_claim(db, claim_id)
    if claim.submitted_by != submitter_id:
        raise NotAuthorized("Only the submitter may withdraw a claim.")
    if claim.status != "pending" or claim.approvals:
        raise NotActionable(f"Claim {claim_id} is {claim.status}; only pending claims can be withdrawn.")

    snapshot = {"status": claim.status, "amount": str(claim.amount), "currency": claim.currency}
    company_id = claim.company_id
    db.expunge(claim)

    result = db.execute(
        delete(Claim)
        .where(Claim.id == claim_id, Claim.status == "pending", Claim.approval_level == 0)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConcurrentModificationConflict(f"Claim {claim_id} changed while withdrawing; reload and retry.")

    db.execute(
        delete(ClaimStep)
        .where(ClaimStep.claim_id == claim_id)
        .execution_options(synchronize_session=False)
    )
    audit_svc.log(
        db=db,
        action="claim.withdrawn",
        entity_type="claim",
        entity_id=claim_id,
        actor_id=submitter_id,
        company_id=company_id,
        before=snapshot,
    )
    db.commit()
    logger.info("Claim withdrawn: claim=%s submitter=%s", claim_id, submitter_id)


# ─── Reads ───

def can_view(claim: Claim, viewer) -> bool:
    if viewer.company_id != claim.company_id:
        return False
    if viewer.id == claim.submitted_by or viewer.role in VIEWER_ROLES:
        return True
    if viewer.id in claim.chain:
        return True
    return any(a.approver_id == viewer.id for a in claim.approvals)


def get_claim(db: Session, claim_id: uuid.UUID, viewer=None) -> Claim:
    claim = load_claim(db, claim_id)
    if viewer is not None and not can_view(claim, viewer):
        raise NotAuthorized("You may not view this claim.")
    return claim


def list_submitted(db: Session, submitter_id: uuid.UUID, status: str | None = None) -> list[Claim]:
    """Return the submitter's own claims, newest first."""
    stmt = (
        select(Claim)
        .where(Claim.submitted_by == submitter_id)
        .options(selectinload(Claim.steps), selectinload(Claim.approvals))
        .order_by(Claim.created_at.desc())
    )
    if status:
        stmt = stmt.where(Claim.status == status)
    return list(db.execute(stmt).scalars().all())


def get_ledger(db: Session, claim_id: uuid.UUID) -> tuple[ApprovalAction, ...]:
    """Read-only, ordered view of the claim's approval actions."""
    load_claim(db, claim_id)
    stmt = (
        select(ApprovalAction)
        .where(ApprovalAction.claim_id == claim_id)
        .order_by(ApprovalAction.sequence_index, ApprovalAction.created_at)
    )
    return tuple(db.execute(stmt).scalars().all())


# ─── Statistics ───

def claim_statistics(db: Session, company_id: uuid.UUID) -> ClaimStatistics:
    """Count the company's claims by state and total the approved amounts.

    `pending` covers both open states. Approved amounts are keyed by the
    base currency each claim was normalised into.
    """
    counts = dict(
        db.execute(
            select(Claim.status, func.count(Claim.id))
            .where(Claim.company_id == company_id)
            .group_by(Claim.status)
        ).all()
    )
    approved_amount = {
        currency: Decimal(str(total))
        for currency, total in db.execute(
            select(Claim.base_currency, func.sum(Claim.converted_amount))
            .where(Claim.company_id == company_id, Claim.status == "approved")
            .group_by(Claim.base_currency)
            .order_by(Claim.base_currency)
        ).all()
    }
    return ClaimStatistics(
        total=sum(counts.values()),
        pending=sum(counts.get(s, 0) for s in OPEN_STATUSES),
        approved=counts.get("approved", 0),
        rejected=counts.get("rejected", 0),
        approved_amount=approved_amount,
    )
