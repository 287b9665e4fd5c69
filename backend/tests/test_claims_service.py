"""Tests for claim submission, withdrawal and read access."""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.exceptions import (
    ConcurrentModificationConflict,
    CurrencyConversionError,
    NotActionable,
    NotAuthorized,
)
from app.models.audit import AuditLog
from app.models.claim import Claim
from app.services import approval as approval_svc
from app.services import claims as claims_svc


# ─── Submission ───────────────────────────────────────────────────────────────

def test_foreign_currency_is_normalised(make_company, make_user, submit):
    company = make_company(base_currency="USD")
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)

    claim = submit(employee, "85.00", currency="eur")

    assert claim.currency == "EUR"
    assert claim.amount == Decimal("85.00")
    assert claim.converted_amount == Decimal("100.00")
    assert claim.base_currency == "USD"


def test_conversion_failure_creates_no_claim(db, make_company, make_user, submit):
    company = make_company()
    employee = make_user(company)

    with pytest.raises(CurrencyConversionError):
        submit(employee, "10", currency="XYZ")
    assert db.execute(select(Claim)).scalars().all() == []


def test_normalizer_is_injectable(make_company, make_user, submit):
    company = make_company(require_manager_approval=False, thresholds=[])
    employee = make_user(company)
    normalizer = MagicMock()
    normalizer.convert.return_value = Decimal("12.34")

    claim = submit(employee, "10", currency="GBP", normalizer=normalizer)

    normalizer.convert.assert_called_once_with(Decimal("10"), "GBP", "USD")
    assert claim.converted_amount == Decimal("12.34")


def test_threshold_routes_to_role_approver(make_company, make_user, submit):
    company = make_company()  # default tiers: 500 manager, 2000 admin
    manager = make_user(company, "manager", approval_limit=1000)
    admin = make_user(company, "admin", approval_limit=10000)
    employee = make_user(company, manager=manager)

    assert submit(employee, "100").chain == [manager.id]
    assert submit(employee, "600").steps[0].assignment == "threshold"
    assert submit(employee, "2500").chain == [admin.id]


def test_unassignable_manager_step_is_dropped(make_company, make_user, submit):
    company = make_company(thresholds=[])
    employee = make_user(company)  # no manager

    claim = submit(employee, "100")

    assert claim.status == "approved"
    assert claim.resolution == "auto"


def test_unassignable_manager_step_escalates_when_configured(make_company, make_user, submit):
    company = make_company(thresholds=[])
    admin = make_user(company, "admin", approval_limit=10000)
    employee = make_user(company)

    with patch.object(settings, "UNASSIGNABLE_STEP_POLICY", "escalate_to_admin"):
        claim = submit(employee, "100")

    assert claim.chain == [admin.id]
    assert claim.steps[0].assignment == "escalated"


@pytest.mark.parametrize("amount,category", [("0", "Travel"), ("-5", "Travel"), ("10", "Gambling")])
def test_invalid_submissions_are_rejected(make_company, make_user, submit, amount, category):
    company = make_company()
    employee = make_user(company)
    with pytest.raises(ValueError):
        submit(employee, amount, category=category)


def test_inactive_submitter_cannot_submit(make_company, make_user, submit):
    company = make_company()
    employee = make_user(company, is_active=False)
    with pytest.raises(NotAuthorized):
        submit(employee, "10")


def test_submission_is_audited(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)

    claim = submit(employee, "100")

    entry = db.execute(select(AuditLog).where(AuditLog.entity_id == claim.id)).scalars().one()
    assert entry.action == "claim.submitted"
    assert entry.actor_id == employee.id


# ─── Withdrawal ───────────────────────────────────────────────────────────────

def test_submitter_can_withdraw_pending_claim(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    claim = submit(employee, "100")

    claims_svc.withdraw_claim(db, claim.id, employee.id)

    assert claims_svc.list_submitted(db, employee.id) == []
    assert approval_svc.list_actionable(db, manager.id) == []


def test_withdraw_rules(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    claim = submit(employee, "100")

    with pytest.raises(NotAuthorized):
        claims_svc.withdraw_claim(db, claim.id, manager.id)

    approval_svc.act(db, claim.id, manager.id, "approved")
    with pytest.raises(NotActionable):
        claims_svc.withdraw_claim(db, claim.id, employee.id)


def test_withdraw_loses_to_concurrent_approval(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    claim = submit(employee, "100")

    real_load = claims_svc.load_claim

    def load_then_race(session, claim_id):
        snapshot = real_load(session, claim_id)
        # another request approves between the read and the delete
        transition = approval_svc.plan_action(snapshot, manager, "approved")
        approval_svc.apply_transition(session, transition)
        session.commit()
        return snapshot

    with patch.object(claims_svc, "load_claim", side_effect=load_then_race):
        with pytest.raises(ConcurrentModificationConflict):
            claims_svc.withdraw_claim(db, claim.id, employee.id)

    assert claims_svc.load_claim(db, claim.id).status == "approved"


# ─── Reads ────────────────────────────────────────────────────────────────────

def test_claim_visibility(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    colleague = make_user(company)
    finance = make_user(company, "finance")
    outsider_admin = make_user(make_company("Other"), "admin")
    claim = submit(employee, "100")

    assert claims_svc.get_claim(db, claim.id, viewer=employee).id == claim.id
    assert claims_svc.get_claim(db, claim.id, viewer=manager).id == claim.id
    for viewer in (colleague, finance, outsider_admin):
        with pytest.raises(NotAuthorized):
            claims_svc.get_claim(db, claim.id, viewer=viewer)


def test_list_submitted_filters_by_status(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    first = submit(employee, "100")
    second = submit(employee, "200")
    approval_svc.act(db, first.id, manager.id, "approved")

    assert [c.id for c in claims_svc.list_submitted(db, employee.id)] == [second.id, first.id]
    assert [c.id for c in claims_svc.list_submitted(db, employee.id, status="pending")] == [second.id]


# ─── Statistics ───────────────────────────────────────────────────────────────

def test_claim_statistics_counts_by_state(db, make_company, make_user, submit):
    company = make_company(thresholds=[])
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    approved = submit(employee, "100")
    rejected = submit(employee, "50")
    submit(employee, "75")
    approval_svc.act(db, approved.id, manager.id, "approved")
    approval_svc.act(db, rejected.id, manager.id, "rejected", "Personal")

    other = make_company("Other", base_currency="EUR", require_manager_approval=False, thresholds=[])
    submit(make_user(other), "999")  # auto-approved, different company

    stats = claims_svc.claim_statistics(db, company.id)

    assert (stats.total, stats.pending, stats.approved, stats.rejected) == (3, 1, 1, 1)
    assert stats.approved_amount == {"USD": Decimal("100")}


def test_claim_statistics_for_company_without_claims(make_company, db):
    stats = claims_svc.claim_statistics(db, make_company().id)
    assert stats.total == 0
    assert stats.approved_amount == {}
