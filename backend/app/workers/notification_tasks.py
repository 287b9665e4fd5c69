"""Celery task delivering claim notifications."""
import logging

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.notification_tasks.send_claim_notification", ignore_result=True)
def send_claim_notification(payload: dict) -> None:
    """Render and send one claim event email.

    The payload is self-contained (see services.notifications.build_payload)
    so the worker never reads claim state that may have moved on since the
    event was emitted.
    """
    from app.services import email as email_svc

    logger.info(
        "send_claim_notification: event=%s claim=%s recipient=%s",
        payload.get("event_type"), payload.get("claim_id"), payload.get("recipient_id"),
    )
    email_svc.send_claim_event_email(
        event_type=payload["event_type"],
        claim_id=payload["claim_id"],
        recipient_email=payload.get("recipient_email"),
        amount=payload["amount"],
        currency=payload["currency"],
        description=payload.get("description", ""),
        rejection_reason=payload.get("rejection_reason"),
    )
