"""Rule Resolver: picks the approval steps that apply to a claim.

Precedence:
  1. The best-matching active ApprovalRule (amount window + category/department).
  2. Company thresholds (sequential companies only): the highest threshold
     whose amount is <= the converted amount yields a single role step.
  3. require_manager_approval: a single step bound to the submitter's manager.
  4. Nothing: an empty chain (the claim auto-approves).

Pure logic: callers pass already-loaded rows; nothing here touches a session.
"""
import enum
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from app.core.exceptions import RuleResolutionError
from app.schemas.policy import CompanyPolicy

logger = logging.getLogger(__name__)

UNBOUNDED = Decimal("Infinity")


class ResolutionSource(str, enum.Enum):
    RULE = "rule"
    THRESHOLD = "threshold"
    MANAGER_DEFAULT = "manager_default"
    EMPTY = "empty"


@dataclass(frozen=True)
class AbstractStep:
    """A step before it is bound to a concrete approver."""

    sequence: int
    approver_role: str
    is_manager_approver: bool = False
    approval_limit: Decimal | None = None
    required: bool = True


@dataclass(frozen=True)
class ClaimFacts:
    converted_amount: Decimal
    category: str
    department: str | None = None


@dataclass
class ResolvedChain:
    source: ResolutionSource
    steps: list[AbstractStep] = field(default_factory=list)
    rule_id: uuid.UUID | None = None

    @property
    def is_empty(self) -> bool:
        return not self.steps


# ─── Rule matching ───

def rule_matches(rule, facts: ClaimFacts) -> bool:
    """True if the rule's [min, max) window and scope sets cover the claim."""
    if not rule.is_active:
        return False
    amount = facts.converted_amount
    if rule.min_amount is not None and amount < Decimal(str(rule.min_amount)):
        return False
    if rule.max_amount is not None and amount >= Decimal(str(rule.max_amount)):
        return False
    categories = rule.categories or []
    if categories and facts.category not in categories:
        return False
    departments = rule.departments or []
    if departments and facts.department not in departments:
        return False
    return True


def _window_width(rule) -> Decimal:
    if rule.min_amount is None or rule.max_amount is None:
        return UNBOUNDED
    return Decimal(str(rule.max_amount)) - Decimal(str(rule.min_amount))


def _specificity(rule) -> int:
    return int(bool(rule.categories)) + int(bool(rule.departments))


def _rank(rule) -> tuple:
    # narrowest window first, then most specific scope, then a stable tail
    return (_window_width(rule), -_specificity(rule), rule.name, str(rule.id))


def select_rule(rules: Iterable, facts: ClaimFacts):
    """Return the highest-ranked matching rule, or None."""
    matching = [r for r in rules if rule_matches(r, facts)]
    if not matching:
        return None
    return min(matching, key=_rank)


# ─── Resolution ───

def resolve(policy: CompanyPolicy | None, rules: Iterable, facts: ClaimFacts) -> ResolvedChain:
    """Resolve the abstract approval steps for a claim.

    Raises:
        RuleResolutionError: If the company has no policy at all.
        ValueError: If the converted amount is not positive.
    """
    if policy is None:
        raise RuleResolutionError("No company policy is configured; the claim cannot be routed.")
    if facts.converted_amount <= 0:
        raise ValueError(f"converted_amount must be positive, got {facts.converted_amount}")

    rule = select_rule(rules, facts)
    if rule is not None:
        steps = [
            AbstractStep(
                sequence=s.sequence,
                approver_role=s.approver_role,
                is_manager_approver=s.is_manager_approver,
                approval_limit=Decimal(str(s.approval_limit)) if s.approval_limit is not None else None,
                required=s.required,
            )
            for s in sorted(rule.steps, key=lambda s: s.sequence)
        ]
        logger.info("resolve: rule '%s' (%s) matched, %d step(s)", rule.name, rule.id, len(steps))
        return ResolvedChain(source=ResolutionSource.RULE, steps=steps, rule_id=rule.id)

    if policy.sequential and policy.thresholds:
        qualifying = [t for t in policy.thresholds if t.amount <= facts.converted_amount]
        if qualifying:
            threshold = qualifying[-1]
            logger.info(
                "resolve: threshold %s matched amount %s -> role %s",
                threshold.amount, facts.converted_amount, threshold.role,
            )
            return ResolvedChain(
                source=ResolutionSource.THRESHOLD,
                steps=[AbstractStep(sequence=1, approver_role=threshold.role)],
            )

    if policy.require_manager_approval:
        return ResolvedChain(
            source=ResolutionSource.MANAGER_DEFAULT,
            steps=[AbstractStep(sequence=1, approver_role="manager", is_manager_approver=True)],
        )

    logger.warning(
        "resolve: no rule, threshold or manager requirement applies to amount %s; empty chain",
        facts.converted_amount,
    )
    return ResolvedChain(source=ResolutionSource.EMPTY)
