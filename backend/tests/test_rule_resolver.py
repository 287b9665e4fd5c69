"""Unit tests for rule resolution precedence and rule matching."""
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import RuleResolutionError
from app.rules.rule_resolver import ClaimFacts, ResolutionSource, resolve, rule_matches, select_rule
from app.schemas.policy import CompanyPolicy


def _step(sequence, role="manager", **kw):
    return SimpleNamespace(
        sequence=sequence,
        approver_role=role,
        is_manager_approver=kw.get("is_manager_approver", False),
        approval_limit=kw.get("approval_limit"),
        required=kw.get("required", True),
    )


def _rule(name="Rule", min_amount=None, max_amount=None, categories=None, departments=None,
          steps=None, is_active=True):
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        min_amount=Decimal(min_amount) if min_amount is not None else None,
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        categories=categories or [],
        departments=departments or [],
        is_active=is_active,
        steps=steps or [_step(1)],
    )


def _facts(amount, category="Travel", department=None):
    return ClaimFacts(converted_amount=Decimal(amount), category=category, department=department)


# ─── Matching ─────────────────────────────────────────────────────────────────

def test_window_is_half_open():
    rule = _rule(min_amount="100", max_amount="1000")
    assert rule_matches(rule, _facts("100"))
    assert rule_matches(rule, _facts("999.99"))
    assert not rule_matches(rule, _facts("1000"))
    assert not rule_matches(rule, _facts("99.99"))


def test_category_and_department_scopes():
    rule = _rule(categories=["Travel"], departments=["Sales"])
    assert rule_matches(rule, _facts("50", "Travel", "Sales"))
    assert not rule_matches(rule, _facts("50", "Meals", "Sales"))
    assert not rule_matches(rule, _facts("50", "Travel", "Engineering"))
    assert not rule_matches(rule, _facts("50", "Travel", None))


def test_inactive_rule_never_matches():
    assert not rule_matches(_rule(is_active=False), _facts("10"))


def test_narrowest_window_wins():
    wide = _rule("wide", min_amount="0", max_amount="10000")
    narrow = _rule("narrow", min_amount="100", max_amount="500")
    unbounded = _rule("unbounded")
    assert select_rule([wide, unbounded, narrow], _facts("200")).name == "narrow"


def test_more_specific_rule_wins_on_equal_window():
    generic = _rule("generic", min_amount="0", max_amount="1000")
    travel = _rule("travel", min_amount="0", max_amount="1000", categories=["Travel"])
    assert select_rule([generic, travel], _facts("200")).name == "travel"


def test_name_breaks_remaining_ties():
    b = _rule("b-rule", min_amount="0", max_amount="1000")
    a = _rule("a-rule", min_amount="0", max_amount="1000")
    assert select_rule([b, a], _facts("200")).name == "a-rule"


# ─── Precedence ───────────────────────────────────────────────────────────────

def test_rule_beats_thresholds():
    policy = CompanyPolicy(thresholds=[{"amount": 100, "role": "admin"}])
    rule = _rule(steps=[_step(2, "finance"), _step(1, "manager", is_manager_approver=True)])
    resolved = resolve(policy, [rule], _facts("500"))

    assert resolved.source == ResolutionSource.RULE
    assert resolved.rule_id == rule.id
    assert [s.sequence for s in resolved.steps] == [1, 2]
    assert resolved.steps[0].is_manager_approver


def test_highest_qualifying_threshold_applies():
    policy = CompanyPolicy(thresholds=[{"amount": 2000, "role": "admin"}, {"amount": 500, "role": "manager"}])

    mid = resolve(policy, [], _facts("1500"))
    assert mid.source == ResolutionSource.THRESHOLD
    assert [s.approver_role for s in mid.steps] == ["manager"]

    high = resolve(policy, [], _facts("2000"))
    assert [s.approver_role for s in high.steps] == ["admin"]


def test_thresholds_ignored_for_non_sequential_company():
    policy = CompanyPolicy(sequential=False, thresholds=[{"amount": 0, "role": "admin"}])
    resolved = resolve(policy, [], _facts("5000"))
    assert resolved.source == ResolutionSource.MANAGER_DEFAULT


def test_manager_default_below_all_thresholds():
    policy = CompanyPolicy(thresholds=[{"amount": 500, "role": "manager"}])
    resolved = resolve(policy, [], _facts("100"))
    assert resolved.source == ResolutionSource.MANAGER_DEFAULT
    assert resolved.steps[0].is_manager_approver


def test_empty_chain_when_nothing_applies():
    policy = CompanyPolicy(require_manager_approval=False)
    resolved = resolve(policy, [], _facts("100"))
    assert resolved.source == ResolutionSource.EMPTY
    assert resolved.is_empty


def test_missing_policy_raises():
    with pytest.raises(RuleResolutionError):
        resolve(None, [], _facts("100"))


def test_non_positive_amount_raises():
    with pytest.raises(ValueError):
        resolve(CompanyPolicy(), [], _facts("0"))


def test_resolution_is_deterministic():
    policy = CompanyPolicy()
    rules = [_rule("x", min_amount="0", max_amount="1000"), _rule("y", min_amount="0", max_amount="1000")]
    first = resolve(policy, rules, _facts("10"))
    second = resolve(policy, list(reversed(rules)), _facts("10"))
    assert first == second
