"""Company approval policy and approval rule schemas.

Policy JSON stored on Company rows is always round-tripped through these
models so malformed configuration is rejected when it is written or loaded,
never halfway through routing a claim.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ThresholdRole = Literal["manager", "admin"]
StepRole = Literal["manager", "finance", "admin", "director"]

DEFAULT_THRESHOLDS = [
    {"amount": Decimal("500"), "role": "manager"},
    {"amount": Decimal("2000"), "role": "admin"},
]


# ─── Company policy ───

class Threshold(BaseModel):
    amount: Decimal = Field(ge=0)
    role: ThresholdRole


class PercentageRule(BaseModel):
    enabled: bool = False
    percentage: int = Field(default=60, ge=1, le=100)


class SpecificApproverRule(BaseModel):
    enabled: bool = False
    approver_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _approver_required_when_enabled(self) -> "SpecificApproverRule":
        if self.enabled and self.approver_id is None:
            raise ValueError("specific_approver_rule.approver_id is required when the rule is enabled")
        return self


class ConditionalPolicy(BaseModel):
    enabled: bool = False
    percentage_rule: PercentageRule = Field(default_factory=PercentageRule)
    specific_approver_rule: SpecificApproverRule = Field(default_factory=SpecificApproverRule)
    hybrid: bool = False


class CompanyPolicy(BaseModel):
    """Validated snapshot of a company's approval policy."""

    base_currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    sequential: bool = True
    require_manager_approval: bool = True
    thresholds: list[Threshold] = Field(default_factory=list)
    conditional_rules: ConditionalPolicy = Field(default_factory=ConditionalPolicy)

    @field_validator("base_currency", mode="before")
    @classmethod
    def _upper_currency(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("thresholds")
    @classmethod
    def _ascending(cls, v: list[Threshold]) -> list[Threshold]:
        return sorted(v, key=lambda t: t.amount)

    @classmethod
    def from_company(cls, company) -> "CompanyPolicy":
        return cls(
            base_currency=company.base_currency,
            sequential=company.sequential,
            require_manager_approval=company.require_manager_approval,
            thresholds=company.thresholds or [],
            conditional_rules=company.conditional_rules or {},
        )

    def column_values(self) -> dict:
        """Values to write back onto a Company row (JSON-safe)."""
        data = self.model_dump(mode="json")
        return {
            "base_currency": data["base_currency"],
            "sequential": data["sequential"],
            "require_manager_approval": data["require_manager_approval"],
            "thresholds": data["thresholds"],
            "conditional_rules": data["conditional_rules"],
        }


class CompanyPolicyUpdate(BaseModel):
    base_currency: str | None = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    sequential: bool | None = None
    require_manager_approval: bool | None = None
    thresholds: list[Threshold] | None = None
    conditional_rules: ConditionalPolicy | None = None


class CompanyPolicyOut(CompanyPolicy):
    company_id: uuid.UUID
    name: str


# ─── Approval rules ───

class ApprovalStepIn(BaseModel):
    sequence: int = Field(ge=0)
    approver_role: StepRole
    is_manager_approver: bool = False
    approval_limit: Decimal | None = Field(default=None, ge=0)
    required: bool = True


class ApprovalRuleIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, gt=0)
    categories: list[str] = Field(default_factory=list)
    departments: list[str] = Field(default_factory=list)
    steps: list[ApprovalStepIn] = Field(min_length=1)
    is_active: bool = True

    @model_validator(mode="after")
    def _check_window_and_sequences(self) -> "ApprovalRuleIn":
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount >= self.max_amount
        ):
            raise ValueError("min_amount must be lower than max_amount")
        sequences = [s.sequence for s in self.steps]
        if len(sequences) != len(set(sequences)):
            raise ValueError("step sequence values must be unique within a rule")
        return self


class ApprovalRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    categories: list[str] | None = None
    departments: list[str] | None = None
    steps: list[ApprovalStepIn] | None = None
    is_active: bool | None = None


class ApprovalStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    approver_role: str
    is_manager_approver: bool
    approval_limit: Decimal | None
    required: bool


class ApprovalRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    min_amount: Decimal | None
    max_amount: Decimal | None
    categories: list[str]
    departments: list[str]
    is_active: bool
    steps: list[ApprovalStepOut]
    created_at: datetime
    updated_at: datetime
