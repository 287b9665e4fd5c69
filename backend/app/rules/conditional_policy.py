"""Conditional Resolution Policy: early approval by quorum or designated approver.

Evaluation order:
  1. Specific approver rule: the designated user has approved.
  2. Percentage rule: approved * 100 >= percentage * chain length.

hybrid=True  -> satisfied if either holds (specific approver checked first).
hybrid=False -> with both sub-rules enabled, the specific approver rule alone
                decides; with one enabled, that one decides.

This policy only ever shortcuts approval; it never rejects.
"""
import uuid
from dataclasses import dataclass
from typing import Iterable, Sequence

from app.schemas.policy import ConditionalPolicy

SPECIFIC_APPROVER = "specific_approver"
PERCENTAGE = "percentage"


@dataclass(frozen=True)
class ConditionalOutcome:
    satisfied: bool
    reason: str | None = None


NOT_SATISFIED = ConditionalOutcome(satisfied=False)


def _approved_by(actions: Iterable) -> list[uuid.UUID]:
    return [
        a.approver_id for a in actions
        if a.decision == "approved" and not getattr(a, "is_override", False)
    ]


def specific_approver_holds(actions: Iterable, rules: ConditionalPolicy) -> bool:
    rule = rules.specific_approver_rule
    if not rule.enabled or rule.approver_id is None:
        return False
    return any(str(approver) == str(rule.approver_id) for approver in _approved_by(actions))


def percentage_holds(chain: Sequence, actions: Iterable, rules: ConditionalPolicy) -> bool:
    rule = rules.percentage_rule
    if not rule.enabled or not chain:
        return False
    # integer form of approved / len(chain) * 100 >= percentage
    return len(_approved_by(actions)) * 100 >= rule.percentage * len(chain)


def evaluate(chain: Sequence, actions: Iterable, rules: ConditionalPolicy | dict | None) -> ConditionalOutcome:
    if rules is None:
        return NOT_SATISFIED
    if isinstance(rules, dict):
        rules = ConditionalPolicy.model_validate(rules)
    if not rules.enabled:
        return NOT_SATISFIED

    actions = list(actions)
    specific_on = rules.specific_approver_rule.enabled
    percentage_on = rules.percentage_rule.enabled

    if specific_approver_holds(actions, rules):
        return ConditionalOutcome(satisfied=True, reason=SPECIFIC_APPROVER)

    percentage_decides = rules.hybrid or not specific_on
    if percentage_on and percentage_decides and percentage_holds(chain, actions, rules):
        return ConditionalOutcome(satisfied=True, reason=PERCENTAGE)

    return NOT_SATISFIED


def is_satisfied(chain: Sequence, actions: Iterable, rules: ConditionalPolicy | dict | None) -> bool:
    return evaluate(chain, actions, rules).satisfied
