"""Audit log helper: append-only writes to audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _as_uuid(value: uuid.UUID | str | None) -> uuid.UUID | None:
    return uuid.UUID(str(value)) if value else None


def log(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    actor_email: str | None = None,
    company_id: uuid.UUID | str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry.

    Args:
        db: Sync SQLAlchemy session; the caller controls the transaction.
        action: Dotted verb, e.g. 'claim.submitted', 'company.policy_updated'.
        entity_type: Domain name, e.g. 'claim', 'company'.
        entity_id: PK of the affected record.
        actor_id: User who performed the action (None for system actions).
        actor_email: Denormalised email (preserved if user is later deleted).
        company_id: Tenant the entry belongs to.
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        company_id=_as_uuid(company_id),
        actor_id=_as_uuid(actor_id),
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=_as_uuid(entity_id),
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )
    db.add(entry)
    db.flush()  # get id without committing; caller controls the transaction
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
