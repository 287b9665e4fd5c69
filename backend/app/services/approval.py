"""Approval state machine.

    pending ──approve──▶ in_review ──approve──▶ ... ──approve (last step)──▶ approved
       │                    │
       └──────reject────────┴──────────────▶ rejected

A conditional policy may finalize `approved` before the last step; an admin
override may finalize either way from any open state.

Every transition is planned from a snapshot of the claim (plan_*), then
written with a compare-and-swap keyed on the snapshot's status and
approval_level (apply_transition). Each successful transition changes at
least one of the two, so at most one action can be appended per level; the
loser of a race gets ConcurrentModificationConflict.

All functions take a sync SQLAlchemy Session and own its transaction
boundary.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import ConcurrentModificationConflict, NotActionable, NotAuthorized
from app.models.claim import OPEN_STATUSES, OVERRIDE_PREFIX, ApprovalAction, Claim
from app.rules import conditional_policy
from app.services import audit as audit_svc
from app.services import directory, notifications
from app.services.claims import load_claim

logger = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")


@dataclass(frozen=True)
class PlannedAction:
    approver_id: uuid.UUID
    decision: str
    comment: str | None
    sequence_index: int
    is_override: bool = False


@dataclass(frozen=True)
class Transition:
    claim_id: uuid.UUID
    expected_status: str
    expected_level: int
    status: str
    approval_level: int
    current_approver_id: uuid.UUID | None
    action: PlannedAction
    rejection_reason: str | None = None
    resolution: str | None = None
    conditional_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in OPEN_STATUSES


# ─── Planning (pure) ───

def _validate_decision(decision: str, comment: str | None) -> None:
    if decision not in DECISIONS:
        raise ValueError(f"Invalid decision '{decision}'. Must be 'approved' or 'rejected'.")
    if comment and len(comment) > settings.MAX_COMMENT_LENGTH:
        raise ValueError(f"Comment cannot exceed {settings.MAX_COMMENT_LENGTH} characters.")


def _require_open(claim: Claim) -> None:
    if claim.status not in OPEN_STATUSES:
        raise NotActionable(f"Claim {claim.id} is already {claim.status}.")


def plan_action(claim: Claim, actor, decision: str, comment: str | None = None) -> Transition:
    """Compute the transition for an approver's decision on the current step.

    Raises:
        NotActionable: The claim is approved or rejected.
        NotAuthorized: The actor is neither the current approver nor an admin
            of the claim's company.
        ValueError: Unknown decision or oversize comment.
    """
    _validate_decision(decision, comment)
    _require_open(claim)
    is_current = claim.current_approver_id is not None and actor.id == claim.current_approver_id
    if not actor.is_active or not (
        is_current or (actor.can_override and actor.company_id == claim.company_id)
    ):
        raise NotAuthorized(f"User {actor.id} is not the current approver for claim {claim.id}.")

    level = claim.approval_level
    action = PlannedAction(
        approver_id=actor.id,
        decision=decision,
        comment=comment,
        sequence_index=level,
    )

    if decision == "rejected":
        return Transition(
            claim_id=claim.id,
            expected_status=claim.status,
            expected_level=level,
            status="rejected",
            approval_level=level,
            current_approver_id=None,
            action=action,
            rejection_reason=comment,
            resolution="sequential",
        )

    chain = claim.chain
    outcome = conditional_policy.evaluate(
        chain, [*claim.approvals, action], claim.conditional_snapshot
    )
    if outcome.satisfied:
        return Transition(
            claim_id=claim.id,
            expected_status=claim.status,
            expected_level=level,
            status="approved",
            approval_level=level,
            current_approver_id=None,
            action=action,
            resolution="conditional",
            conditional_reason=outcome.reason,
        )

    next_level = level + 1
    if next_level < len(chain):
        return Transition(
            claim_id=claim.id,
            expected_status=claim.status,
            expected_level=level,
            status="in_review",
            approval_level=next_level,
            current_approver_id=chain[next_level],
            action=action,
        )

    return Transition(
        claim_id=claim.id,
        expected_status=claim.status,
        expected_level=level,
        status="approved",
        approval_level=level,
        current_approver_id=None,
        action=action,
        resolution="sequential",
    )


def plan_override(claim: Claim, admin, decision: str, reason: str) -> Transition:
    """Compute an admin override that finalizes the claim immediately."""
    if not reason or not reason.strip():
        raise ValueError("An override reason is required.")
    limit = settings.MAX_COMMENT_LENGTH - len(OVERRIDE_PREFIX)
    if len(reason.strip()) > limit:
        raise ValueError(f"Override reason cannot exceed {limit} characters.")
    comment = f"{OVERRIDE_PREFIX}{reason.strip()}"
    _validate_decision(decision, comment)
    _require_open(claim)
    if not admin.is_active or not admin.can_override or admin.company_id != claim.company_id:
        raise NotAuthorized(f"User {admin.id} may not override claim {claim.id}.")

    return Transition(
        claim_id=claim.id,
        expected_status=claim.status,
        expected_level=claim.approval_level,
        status=decision,
        approval_level=claim.approval_level,
        current_approver_id=None,
        action=PlannedAction(
            approver_id=admin.id,
            decision=decision,
            comment=comment,
            sequence_index=claim.approval_level,
            is_override=True,
        ),
        rejection_reason=comment if decision == "rejected" else None,
        resolution="override",
    )


# ─── Applying (compare-and-swap) ───

def apply_transition(db: Session, transition: Transition) -> None:
    """Write a planned transition atomically or raise ConcurrentModificationConflict.

    The claim row is updated only if it still has the status and
    approval_level the plan was computed from; the ledger entry is inserted
    in the same transaction.
    """
    now = datetime.now(timezone.utc)
    values = {
        "status": transition.status,
        "approval_level": transition.approval_level,
        "current_approver_id": transition.current_approver_id,
        "updated_at": now,
    }
    if transition.is_terminal:
        values["decided_at"] = now
        values["resolution"] = transition.resolution
    if transition.status == "rejected":
        values["rejection_reason"] = transition.rejection_reason

    try:
        result = db.execute(
            update(Claim)
            .where(
                Claim.id == transition.claim_id,
                Claim.status == transition.expected_status,
                Claim.approval_level == transition.expected_level,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModificationConflict(
                f"Claim {transition.claim_id} changed since it was read "
                f"(expected {transition.expected_status}@{transition.expected_level}); reload and retry."
            )

        planned = transition.action
        db.add(ApprovalAction(
            claim_id=transition.claim_id,
            approver_id=planned.approver_id,
            decision=planned.decision,
            comment=planned.comment,
            sequence_index=planned.sequence_index,
            is_override=planned.is_override,
        ))
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrentModificationConflict(
            f"Claim {transition.claim_id} already has an action at level {transition.expected_level}."
        ) from exc
    except Exception:
        db.rollback()
        raise


def _finish(db: Session, transition: Transition) -> Claim:
    db.commit()
    claim = load_claim(db, transition.claim_id)
    logger.info(
        "Approval decision: claim=%s actor=%s decision=%s level=%s status=%s%s",
        claim.id, transition.action.approver_id, transition.action.decision,
        transition.expected_level, claim.status,
        f" ({transition.resolution}:{transition.conditional_reason})" if transition.conditional_reason else "",
    )
    notifications.notify_transition(db, claim)
    return claim


# ─── Public operations ───

def _load_actor(db: Session, actor_id: uuid.UUID):
    actor = directory.get_user(db, actor_id)
    if actor is None:
        raise NotAuthorized(f"User {actor_id} not found.")
    return actor


def act(
    db: Session,
    claim_id: uuid.UUID,
    actor_id: uuid.UUID,
    decision: str,
    comment: str | None = None,
) -> Claim:
    """Apply an approve/reject decision from the current approver.

    Raises:
        ClaimNotFound, NotActionable, NotAuthorized,
        ConcurrentModificationConflict: Another action won the race for this step.
    """
    claim = load_claim(db, claim_id)
    actor = _load_actor(db, actor_id)
    transition = plan_action(claim, actor, decision, comment)
    apply_transition(db, transition)
    return _finish(db, transition)


def override_act(
    db: Session,
    claim_id: uuid.UUID,
    admin_id: uuid.UUID,
    decision: str,
    reason: str,
) -> Claim:
    """Force a terminal decision as an admin, bypassing remaining steps."""
    claim = load_claim(db, claim_id)
    admin = _load_actor(db, admin_id)
    transition = plan_override(claim, admin, decision, reason)
    apply_transition(db, transition)
    audit_svc.log(
        db=db,
        action="claim.override",
        entity_type="claim",
        entity_id=claim.id,
        actor_id=admin.id,
        actor_email=admin.email,
        company_id=claim.company_id,
        before={
            "status": transition.expected_status,
            "approval_level": transition.expected_level,
            "current_approver_id": claim.current_approver_id,
        },
        after={"status": transition.status, "decision": decision},
        notes=transition.action.comment,
    )
    logger.warning("Admin override: claim=%s admin=%s decision=%s", claim.id, admin.id, decision)
    return _finish(db, transition)


# ─── Listings ───

def list_actionable(db: Session, approver_id: uuid.UUID) -> list[Claim]:
    """Claims currently waiting on the given approver, oldest first."""
    stmt = (
        select(Claim)
        .where(
            Claim.current_approver_id == approver_id,
            Claim.status.in_(OPEN_STATUSES),
        )
        .options(selectinload(Claim.steps), selectinload(Claim.approvals))
        .order_by(Claim.created_at.asc())
    )
    return list(db.execute(stmt).scalars().all())


def list_decided_by(db: Session, approver_id: uuid.UUID) -> list[Claim]:
    """Claims on which the given user has recorded an action, most recent first."""
    acted_on = select(ApprovalAction.claim_id).where(ApprovalAction.approver_id == approver_id)
    stmt = (
        select(Claim)
        .where(Claim.id.in_(acted_on))
        .options(selectinload(Claim.steps), selectinload(Claim.approvals))
        .order_by(Claim.updated_at.desc())
    )
    return list(db.execute(stmt).scalars().all())
