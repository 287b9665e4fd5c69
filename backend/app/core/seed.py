"""Seed a demo company for local development."""
import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep
from app.models.company import Company
from app.models.user import User
from app.services import company_policy

logger = logging.getLogger(__name__)

DEMO_COMPANY = "Demo Co"

# (email, name, role, department, approval_limit, manager_email)
DEMO_USERS = [
    ("admin@demo.example", "Ada Admin", "admin", None, Decimal("100000"), None),
    ("director@demo.example", "Dana Director", "director", None, Decimal("25000"), None),
    ("finance@demo.example", "Frank Finance", "finance", "Finance", Decimal("10000"), None),
    ("manager@demo.example", "Mia Manager", "manager", "Sales", Decimal("2500"), None),
    ("employee@demo.example", "Eli Employee", "employee", "Sales", Decimal("0"), "manager@demo.example"),
]


def seed_demo_company(db: Session) -> Company:
    """Create the demo company, its users and one travel rule if missing."""
    company = db.execute(select(Company).where(Company.name == DEMO_COMPANY)).scalars().first()
    if company is not None:
        logger.info("Demo company already exists (%s), skipping", company.id)
        return company

    company = company_policy.create_company(db, name=DEMO_COMPANY)
    by_email: dict[str, User] = {}
    for email, name, role, department, limit, manager_email in DEMO_USERS:
        user = User(
            company_id=company.id,
            email=email,
            name=name,
            role=role,
            department=department,
            approval_limit=limit,
            manager_id=by_email[manager_email].id if manager_email else None,
        )
        db.add(user)
        db.flush()
        by_email[email] = user
        logger.info("Seeded user: %s (%s)", email, role)

    db.add(ApprovalRule(
        company_id=company.id,
        name="Travel over 1000",
        min_amount=Decimal("1000"),
        categories=["Travel"],
        steps=[
            ApprovalRuleStep(sequence=1, approver_role="manager", is_manager_approver=True),
            ApprovalRuleStep(sequence=2, approver_role="finance"),
            ApprovalRuleStep(sequence=3, approver_role="director", required=False),
        ],
    ))
    db.commit()
    logger.info("Seeding complete: company %s", company.id)
    return company


def run_seed() -> None:
    with SessionLocal() as db:
        seed_demo_company(db)
