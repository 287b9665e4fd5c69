"""Shared fixtures: in-memory SQLite database, eager Celery, data factories."""
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import uuid
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers all tables on Base.metadata)
from app.db.base import Base
from app.db.session import get_sync_session
from app.models.approval_rule import ApprovalRule, ApprovalRuleStep
from app.models.user import User
from app.services import claims as claims_svc
from app.services import company_policy


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ─── Factories ───

@pytest.fixture
def make_company(db):
    def _make(name: str = "Acme", **policy):
        return company_policy.create_company(db, name=name, **policy)
    return _make


@pytest.fixture
def make_user(db):
    def _make(
        company,
        role: str = "employee",
        approval_limit: str | int = 0,
        manager=None,
        department: str | None = None,
        email: str | None = None,
        is_active: bool = True,
    ) -> User:
        user = User(
            company_id=company.id,
            email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
            name=(email or role).split("@")[0].title(),
            role=role,
            department=department,
            manager_id=manager.id if manager else None,
            approval_limit=Decimal(str(approval_limit)),
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_rule(db):
    def _make(company, steps: list[dict], name: str = "Rule", **fields) -> ApprovalRule:
        categories = fields.pop("categories", [])
        departments = fields.pop("departments", [])
        rule = ApprovalRule(
            company_id=company.id,
            name=name,
            categories=categories,
            departments=departments,
            **fields,
            steps=[ApprovalRuleStep(**step) for step in steps],
        )
        db.add(rule)
        db.commit()
        return rule
    return _make


@pytest.fixture
def submit(db):
    """Submit a USD claim with sensible defaults."""
    def _submit(submitter, amount="100.00", currency="USD", category="Travel", **kwargs):
        return claims_svc.submit_claim(
            db=db,
            submitter_id=submitter.id,
            amount=Decimal(str(amount)),
            currency=currency,
            category=category,
            description=kwargs.pop("description", "Client visit"),
            expense_date=kwargs.pop("expense_date", date(2026, 10, 1)),
            **kwargs,
        )
    return _submit


# ─── HTTP ───

@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    def _override_session():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_sync_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
