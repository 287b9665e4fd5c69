"""Company and its approval policy."""
from sqlalchemy import Boolean, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin


class Company(Base, UUIDMixin, TimestampMixin):
    """A tenant. Its policy columns are validated through app.schemas.policy."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    sequential: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    require_manager_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    thresholds: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )  # [{"amount": 500, "role": "manager"}, ...]
    conditional_rules: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=dict
    )  # ConditionalPolicy.model_dump()
