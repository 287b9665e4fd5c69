"""Tests for company policy defaults, validation and admin edits."""
import json
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.exceptions import InvalidPolicyError, NotAuthorized
from app.models.audit import AuditLog
from app.models.company import Company
from app.schemas.policy import ApprovalRuleIn, CompanyPolicyUpdate, ConditionalPolicy
from app.services import company_policy


def test_default_thresholds_applied_when_omitted(db, make_company):
    _, policy = company_policy.get_company_policy(db, make_company().id)
    assert [(t.amount, t.role) for t in policy.thresholds] == [
        (Decimal("500"), "manager"),
        (Decimal("2000"), "admin"),
    ]
    assert policy.sequential is True
    assert policy.require_manager_approval is True
    assert policy.conditional_rules.enabled is False
    assert policy.conditional_rules.percentage_rule.percentage == 60


def test_explicit_empty_thresholds_stay_empty(db, make_company):
    _, policy = company_policy.get_company_policy(db, make_company(thresholds=[]).id)
    assert policy.thresholds == []


def test_invalid_policy_is_rejected(make_company):
    with pytest.raises(InvalidPolicyError):
        make_company(thresholds=[{"amount": 100, "role": "janitor"}])
    with pytest.raises(InvalidPolicyError):
        make_company(conditional_rules={"specific_approver_rule": {"enabled": True}})


def test_admin_updates_policy_and_is_audited(db, make_company, make_user):
    company = make_company()
    admin = make_user(company, "admin")
    cfo = make_user(company, "finance")

    update = CompanyPolicyUpdate(
        base_currency="eur",
        conditional_rules=ConditionalPolicy(
            enabled=True,
            specific_approver_rule={"enabled": True, "approver_id": cfo.id},
        ),
    )
    _, policy = company_policy.update_company_policy(db, company.id, update, admin)

    assert policy.base_currency == "EUR"
    assert policy.conditional_rules.specific_approver_rule.approver_id == cfo.id
    assert len(policy.thresholds) == 2  # untouched fields survive a partial update

    entry = db.execute(select(AuditLog).where(AuditLog.action == "company.policy_updated")).scalars().one()
    assert json.loads(entry.before_state)["base_currency"] == "USD"
    assert json.loads(entry.after_state)["base_currency"] == "EUR"


def test_only_company_admin_may_update(db, make_company, make_user):
    company = make_company()
    manager = make_user(company, "manager")
    other_admin = make_user(make_company("Other"), "admin")
    update = CompanyPolicyUpdate(sequential=False)

    with pytest.raises(NotAuthorized):
        company_policy.update_company_policy(db, company.id, update, manager)
    with pytest.raises(NotAuthorized):
        company_policy.update_company_policy(db, company.id, update, other_admin)


def test_specific_approver_must_belong_to_company(db, make_company, make_user):
    company = make_company()
    admin = make_user(company, "admin")
    stranger = make_user(make_company("Other"), "finance")

    update = CompanyPolicyUpdate(
        conditional_rules=ConditionalPolicy(
            enabled=True,
            specific_approver_rule={"enabled": True, "approver_id": stranger.id},
        ),
    )
    with pytest.raises(InvalidPolicyError):
        company_policy.update_company_policy(db, company.id, update, admin)


def test_new_company_cannot_name_outside_specific_approver(db, make_company, make_user):
    stranger = make_user(make_company("Other"), "finance")

    with pytest.raises(InvalidPolicyError):
        make_company(
            "Newco",
            conditional_rules={
                "enabled": True,
                "specific_approver_rule": {"enabled": True, "approver_id": str(stranger.id)},
            },
        )
    assert db.execute(select(Company).where(Company.name == "Newco")).scalars().all() == []


# ─── Approval rule validation ─────────────────────────────────────────────────

def test_rule_requires_steps_with_unique_sequences():
    with pytest.raises(ValueError):
        ApprovalRuleIn(name="empty", steps=[])
    with pytest.raises(ValueError):
        ApprovalRuleIn(name="dupes", steps=[
            {"sequence": 1, "approver_role": "manager"},
            {"sequence": 1, "approver_role": "finance"},
        ])


def test_rule_window_must_be_ordered():
    with pytest.raises(ValueError):
        ApprovalRuleIn(
            name="backwards", min_amount=1000, max_amount=100,
            steps=[{"sequence": 1, "approver_role": "manager"}],
        )
