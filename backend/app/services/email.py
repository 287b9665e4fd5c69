"""Email notification service: console mock (MAIL_ENABLED=False).

When MAIL_ENABLED is False, email content is printed to logs instead of
being sent via SMTP. Set MAIL_ENABLED=True to wire a real transport.
"""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

SUBJECTS = {
    "approval_requested": "Action Required: expense claim {short_id} awaiting your approval",
    "claim_approved": "Your expense claim {short_id} was approved",
    "claim_rejected": "Your expense claim {short_id} was rejected",
}


def send_claim_event_email(
    event_type: str,
    claim_id: str,
    recipient_email: str | None,
    amount: str,
    currency: str,
    description: str = "",
    rejection_reason: str | None = None,
) -> None:
    """Send (or mock-log) a claim event email.

    Args:
        event_type: One of approval_requested, claim_approved, claim_rejected.
        claim_id: Claim UUID as a string.
        recipient_email: Address of the approver or submitter.
        amount: Submitted amount, already formatted as a string.
        currency: Submitted currency code.
        description: Claim description line.
        rejection_reason: Included for claim_rejected events.
    """
    subject = SUBJECTS.get(event_type, "Expense claim {short_id} updated").format(
        short_id=claim_id[:8]
    )
    claim_url = f"{settings.APP_BASE_URL.rstrip('/')}/api/v1/claims/{claim_id}"

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== CLAIM NOTIFICATION EMAIL ===\n"
            "To: %s\n"
            "Subject: %s\n"
            "Amount: %s %s\n"
            "Description: %s\n"
            "Reason: %s\n"
            "View: %s\n"
            "================================",
            recipient_email or "unknown",
            subject,
            amount,
            currency,
            description,
            rejection_reason or "-",
            claim_url,
        )
        return

    # Real SMTP path (not implemented)
    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for claim %s.",
        claim_id,
    )
    logger.info(
        "CLAIM EMAIL (unsent): to=%s subject=%s amount=%s %s url=%s",
        recipient_email, subject, amount, currency, claim_url,
    )
