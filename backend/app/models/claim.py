"""Expense claim, its frozen approval chain, and the approval action ledger."""
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.config import settings
from app.db.base import Base, TimestampMixin, UUIDMixin

CATEGORIES = (
    "Travel",
    "Meals",
    "Office Supplies",
    "Equipment",
    "Software",
    "Marketing",
    "Training",
    "Other",
)

OPEN_STATUSES = ("pending", "in_review")
TERMINAL_STATUSES = ("approved", "rejected")

OVERRIDE_PREFIX = "Admin Override: "
MAX_OVERRIDE_REASON_LENGTH = settings.MAX_COMMENT_LENGTH - len(OVERRIDE_PREFIX)


class Claim(Base, UUIDMixin, TimestampMixin):
    """A submitted expense and its approval state."""

    __tablename__ = "claims"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    submitted_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    converted_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 8), nullable=False, default=Decimal("1"))
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, in_review, approved, rejected
    current_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True
    )
    approval_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )  # sequential, conditional, override, auto
    rule_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_rules.id"), nullable=True
    )
    conditional_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    steps: Mapped[list["ClaimStep"]] = relationship(
        "ClaimStep",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimStep.position",
    )
    approvals: Mapped[list["ApprovalAction"]] = relationship(
        "ApprovalAction",
        back_populates="claim",
        order_by="ApprovalAction.sequence_index",
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def chain(self) -> list[uuid.UUID]:
        return [step.approver_id for step in self.steps]


class ClaimStep(Base, UUIDMixin, TimestampMixin):
    """One position of a claim's approval chain, frozen at submission."""

    __tablename__ = "claim_steps"
    __table_args__ = (UniqueConstraint("claim_id", "position", name="uq_claim_step_position"),)

    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("claims.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # index into the chain
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # rule sequence, may be sparse
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    approver_role: Mapped[str] = mapped_column(String(50), nullable=False)
    assignment: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # rule, threshold, manager, escalated

    claim: Mapped["Claim"] = relationship("Claim", back_populates="steps")


class ApprovalAction(Base, UUIDMixin, TimestampMixin):
    """Append-only ledger entry. Never updated or deleted once written."""

    __tablename__ = "approval_actions"
    __table_args__ = (UniqueConstraint("claim_id", "sequence_index", name="uq_approval_action_level"),)

    claim_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("claims.id"), nullable=False, index=True
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    decision: Mapped[str] = mapped_column(String(20), nullable=False)  # approved, rejected
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence_index: Mapped[int] = mapped_column(Integer, nullable=False)  # claim.approval_level when appended
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    claim: Mapped["Claim"] = relationship("Claim", back_populates="approvals")


@event.listens_for(ApprovalAction, "before_update")
def _refuse_action_update(mapper, connection, target):
    raise PermissionError(f"ApprovalAction {target.id} is immutable.")


@event.listens_for(ApprovalAction, "before_delete")
def _refuse_action_delete(mapper, connection, target):
    raise PermissionError(f"ApprovalAction {target.id} is immutable.")
