"""Chain Builder: binds abstract approval steps to concrete approvers.

A step that cannot be bound is never kept as "required but unassignable":
it is handed to the configured UnassignableStepPolicy, which either drops it
(DropUnassignableStep) or rebinds it to an admin (EscalateToAdmin).
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from app.core.config import settings
from app.rules.rule_resolver import AbstractStep, ResolutionSource, ResolvedChain

logger = logging.getLogger(__name__)


class Assignment(str, enum.Enum):
    RULE = "rule"
    THRESHOLD = "threshold"
    MANAGER = "manager"
    ESCALATED = "escalated"


@dataclass(frozen=True)
class BoundStep:
    position: int
    sequence: int
    approver_id: uuid.UUID
    approver_role: str
    assignment: Assignment


# ─── Eligibility ───

def required_limit(step: AbstractStep, amount: Decimal) -> Decimal:
    if step.approval_limit is not None:
        return max(amount, step.approval_limit)
    return amount


def is_eligible(user, submitter, limit: Decimal) -> bool:
    """Active, not the submitter, and authorised for at least `limit`."""
    if not user.is_active or getattr(user, "deleted_at", None) is not None:
        return False
    if user.id == submitter.id:
        return False
    return Decimal(str(user.approval_limit or 0)) >= limit


def _candidate_rank(user, submitter, department: str | None) -> tuple:
    return (
        0 if user.id == submitter.manager_id else 1,
        0 if department and user.department == department else 1,
        user.email,
    )


def pick_role_approver(step: AbstractStep, users: Iterable, submitter, amount: Decimal,
                       department: str | None):
    limit = required_limit(step, amount)
    candidates = [
        u for u in users
        if u.role == step.approver_role and is_eligible(u, submitter, limit)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda u: _candidate_rank(u, submitter, department))


def pick_manager(step: AbstractStep, users_by_id: dict, submitter, amount: Decimal):
    if submitter.manager_id is None:
        return None
    manager = users_by_id.get(submitter.manager_id)
    if manager is None or not is_eligible(manager, submitter, required_limit(step, amount)):
        return None
    return manager


# ─── Unassignable step policies ───

class DropUnassignableStep:
    name = "drop"

    def fallback(self, step: AbstractStep, users: Iterable, submitter, amount: Decimal):
        return None


class EscalateToAdmin:
    name = "escalate_to_admin"

    def fallback(self, step: AbstractStep, users: Iterable, submitter, amount: Decimal):
        limit = required_limit(step, amount)
        admins = [u for u in users if u.role == "admin" and is_eligible(u, submitter, limit)]
        if not admins:
            return None
        return min(admins, key=lambda u: u.email)


UNASSIGNABLE_STEP_POLICIES = {
    DropUnassignableStep.name: DropUnassignableStep,
    EscalateToAdmin.name: EscalateToAdmin,
}


def get_unassignable_step_policy(name: str | None = None):
    return UNASSIGNABLE_STEP_POLICIES[name or settings.UNASSIGNABLE_STEP_POLICY]()


# ─── Build ───

def build(
    resolved: ResolvedChain,
    submitter,
    users: Iterable,
    amount: Decimal,
    department: str | None = None,
    policy=None,
) -> list[BoundStep]:
    """Expand resolved steps into an ordered chain of concrete approvers.

    Args:
        resolved: Output of rule_resolver.resolve().
        submitter: The claim submitter (needs .id and .manager_id).
        users: Candidate approvers from the identity provider (same company).
        amount: Claim amount in base currency.
        department: Claim department, used to rank same-department candidates.
        policy: Unassignable step policy; defaults to the configured one.

    Returns:
        BoundSteps sorted by sequence with contiguous positions. May be empty.
    """
    policy = policy or get_unassignable_step_policy()
    users = list(users)
    users_by_id = {u.id: u for u in users}
    default_assignment = (
        Assignment.THRESHOLD if resolved.source == ResolutionSource.THRESHOLD else Assignment.RULE
    )

    bound: list[tuple[int, uuid.UUID, str, Assignment]] = []
    for step in sorted(resolved.steps, key=lambda s: s.sequence):
        if step.is_manager_approver:
            approver = pick_manager(step, users_by_id, submitter, amount)
            assignment = Assignment.MANAGER
        else:
            approver = pick_role_approver(step, users, submitter, amount, department)
            assignment = default_assignment

        if approver is None:
            if not step.required:
                logger.info("build: optional step %s (%s) has no eligible approver; dropped",
                            step.sequence, step.approver_role)
                continue
            approver = policy.fallback(step, users, submitter, amount)
            if approver is None:
                logger.warning(
                    "build: step %s (%s) unassignable for submitter %s; dropped by policy '%s'",
                    step.sequence, step.approver_role, submitter.id, policy.name,
                )
                continue
            assignment = Assignment.ESCALATED
            logger.warning("build: step %s (%s) escalated to admin %s",
                           step.sequence, step.approver_role, approver.id)

        bound.append((step.sequence, approver.id, step.approver_role, assignment))

    return [
        BoundStep(position=i, sequence=seq, approver_id=approver_id,
                  approver_role=role, assignment=assignment)
        for i, (seq, approver_id, role, assignment) in enumerate(bound)
    ]
