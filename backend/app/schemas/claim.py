"""Pydantic schemas for claim submission and approval endpoints."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.claim import MAX_OVERRIDE_REASON_LENGTH

Category = Literal[
    "Travel",
    "Meals",
    "Office Supplies",
    "Equipment",
    "Software",
    "Marketing",
    "Training",
    "Other",
]
Decision = Literal["approved", "rejected"]


# ─── Requests ───

class ClaimSubmitRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)
    category: Category
    department: str | None = None
    description: str = Field(min_length=1, max_length=200)
    expense_date: date

    @field_validator("currency")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


class ApprovalDecisionRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=500)


class OverrideRequest(BaseModel):
    decision: Decision
    reason: str = Field(min_length=1, max_length=MAX_OVERRIDE_REASON_LENGTH)


# ─── Responses ───

class ClaimStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    position: int
    sequence: int
    approver_id: uuid.UUID
    approver_role: str
    assignment: str


class ApprovalActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    approver_id: uuid.UUID
    decision: str
    comment: str | None
    sequence_index: int
    is_override: bool
    created_at: datetime


class ClaimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    submitted_by: uuid.UUID
    amount: Decimal
    currency: str
    converted_amount: Decimal
    base_currency: str
    exchange_rate: Decimal
    category: str
    department: str | None
    description: str
    expense_date: date
    status: str
    current_approver_id: uuid.UUID | None
    approval_level: int
    rejection_reason: str | None
    resolution: str | None
    decided_at: datetime | None
    created_at: datetime
    steps: list[ClaimStepOut]
    approvals: list[ApprovalActionOut]


class ClaimListResponse(BaseModel):
    items: list[ClaimOut]
    total: int


class ClaimStatistics(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    # keyed by the base currency each claim was normalised into
    approved_amount: dict[str, Decimal]
