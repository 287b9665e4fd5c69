"""Tests for the development seed."""
from sqlalchemy import func, select

from app.core.seed import DEMO_USERS, seed_demo_company
from app.models.user import User
from app.services import claims as claims_svc


def test_seed_is_idempotent(db):
    first = seed_demo_company(db)
    second = seed_demo_company(db)

    assert first.id == second.id
    assert db.execute(select(func.count(User.id))).scalar_one() == len(DEMO_USERS)


def test_seeded_company_routes_travel_claims(db, submit):
    company = seed_demo_company(db)
    users = {u.email: u for u in db.execute(select(User).where(User.company_id == company.id)).scalars()}
    employee = users["employee@demo.example"]

    claim = submit(employee, "1500", category="Travel")

    assert claim.chain == [
        users["manager@demo.example"].id,
        users["finance@demo.example"].id,
        users["director@demo.example"].id,
    ]
    assert claims_svc.load_claim(db, claim.id).rule_id is not None
