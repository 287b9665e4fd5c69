from app.models.company import Company
from app.models.user import User
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep
from app.models.claim import Claim, ClaimStep, ApprovalAction
from app.models.audit import AuditLog

__all__ = [
    "Company",
    "User",
    "ApprovalRule", "ApprovalRuleStep",
    "Claim", "ClaimStep", "ApprovalAction",
    "AuditLog",
]
