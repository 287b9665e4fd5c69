"""Notification sender: fire-and-forget claim events.

Called only after a state transition has been committed. Delivery problems
are logged and swallowed; they never undo or block the transition.
"""
import logging
import uuid

from sqlalchemy.orm import Session

from app.core.config import settings
from app.services import directory

logger = logging.getLogger(__name__)

APPROVAL_REQUESTED = "approval_requested"
CLAIM_APPROVED = "claim_approved"
CLAIM_REJECTED = "claim_rejected"


def build_payload(claim, recipient, event_type: str) -> dict:
    return {
        "event_type": event_type,
        "claim_id": str(claim.id),
        "recipient_id": str(recipient.id) if recipient else None,
        "recipient_email": recipient.email if recipient else None,
        "amount": f"{claim.amount:.2f}",
        "currency": claim.currency,
        "description": claim.description,
        "rejection_reason": claim.rejection_reason,
        "status": claim.status,
    }


def notify(db: Session, claim, recipient_id: uuid.UUID | None, event_type: str) -> bool:
    """Queue one notification. Returns False if it could not be queued."""
    if not settings.NOTIFICATIONS_ENABLED:
        return False
    from app.workers.notification_tasks import send_claim_notification

    try:
        recipient = directory.get_user(db, recipient_id) if recipient_id else None
        send_claim_notification.delay(build_payload(claim, recipient, event_type))
    except Exception:
        logger.error(
            "notify: failed to queue %s for claim %s (recipient %s); transition kept",
            event_type, claim.id, recipient_id, exc_info=True,
        )
        return False
    return True


def notify_transition(db: Session, claim) -> bool:
    """Emit the event matching the claim's (already committed) state."""
    if claim.status == "approved":
        return notify(db, claim, claim.submitted_by, CLAIM_APPROVED)
    if claim.status == "rejected":
        return notify(db, claim, claim.submitted_by, CLAIM_REJECTED)
    return notify(db, claim, claim.current_approver_id, APPROVAL_REQUESTED)
