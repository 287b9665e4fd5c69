"""Identity/Role Provider: read-only lookups of users and companies."""
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.company import Company
from app.models.user import User


def get_user(db: Session, user_id: uuid.UUID) -> User | None:
    """Return a non-deleted user by id (active or not)."""
    return db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    ).scalars().first()


def get_company(db: Session, company_id: uuid.UUID) -> Company | None:
    return db.execute(select(Company).where(Company.id == company_id)).scalars().first()


def list_company_users(db: Session, company_id: uuid.UUID) -> list[User]:
    """All non-deleted users of a company, ordered by email."""
    stmt = (
        select(User)
        .where(User.company_id == company_id, User.deleted_at.is_(None))
        .order_by(User.email)
    )
    return list(db.execute(stmt).scalars().all())
