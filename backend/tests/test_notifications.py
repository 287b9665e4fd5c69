"""Tests for claim event notifications."""
from unittest.mock import patch

from app.core.config import settings
from app.services import approval as approval_svc
from app.services import notifications
from app.workers.notification_tasks import send_claim_notification


def test_submission_notifies_first_approver(make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000, email="boss@example.com")
    employee = make_user(company, manager=manager)

    with patch("app.services.email.send_claim_event_email") as send_email:
        submit(employee, "100")

    send_email.assert_called_once()
    kwargs = send_email.call_args.kwargs
    assert kwargs["event_type"] == notifications.APPROVAL_REQUESTED
    assert kwargs["recipient_email"] == "boss@example.com"
    assert kwargs["amount"] == "100.00"


def test_final_decision_notifies_submitter(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager, email="me@example.com")
    claim = submit(employee, "100")

    with patch("app.services.email.send_claim_event_email") as send_email:
        approval_svc.act(db, claim.id, manager.id, "rejected", "Missing receipt")

    kwargs = send_email.call_args.kwargs
    assert kwargs["event_type"] == notifications.CLAIM_REJECTED
    assert kwargs["recipient_email"] == "me@example.com"
    assert kwargs["rejection_reason"] == "Missing receipt"


def test_dispatch_failure_does_not_undo_transition(db, make_company, make_user, submit):
    company = make_company()
    manager = make_user(company, "manager", approval_limit=1000)
    employee = make_user(company, manager=manager)
    claim = submit(employee, "100")

    with patch.object(send_claim_notification, "delay", side_effect=RuntimeError("broker down")):
        result = approval_svc.act(db, claim.id, manager.id, "approved")

    assert result.status == "approved"
    assert [a.decision for a in result.approvals] == ["approved"]


def test_notify_returns_false_when_disabled(db, make_company, make_user, submit):
    company = make_company(require_manager_approval=False, thresholds=[])
    employee = make_user(company)
    claim = submit(employee, "10")

    with patch.object(settings, "NOTIFICATIONS_ENABLED", False), \
         patch.object(send_claim_notification, "delay") as delay:
        assert notifications.notify_transition(db, claim) is False
    delay.assert_not_called()
