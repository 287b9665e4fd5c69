"""Approval rules: amount/category/department windows mapped to ordered steps."""
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, JSON, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin

STEP_ROLES = ("manager", "finance", "admin", "director")


class ApprovalRule(Base, UUIDMixin, TimestampMixin):
    """Defines who must approve claims whose amount falls in [min_amount, max_amount)."""

    __tablename__ = "approval_rules"

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("companies.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # empty = all
    departments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # empty = all
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    steps: Mapped[list["ApprovalRuleStep"]] = relationship(
        "ApprovalRuleStep",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalRuleStep.sequence",
    )


class ApprovalRuleStep(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "approval_rule_steps"
    __table_args__ = (UniqueConstraint("rule_id", "sequence", name="uq_rule_step_sequence"),)

    rule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str] = mapped_column(String(50), nullable=False)
    is_manager_approver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approval_limit: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    rule: Mapped["ApprovalRule"] = relationship("ApprovalRule", back_populates="steps")
