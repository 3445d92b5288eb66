from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.db.models import User, UserRole
from app.utils.auth import AuthUtils
from app.utils.logging import get_logger

logger = get_logger()


def seed_users(db_session: Session):
    """Sync version: Seed the admin and sender accounts (skips existing emails)"""

    accounts = [
        (settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD, UserRole.ADMIN),
        (settings.SEED_SENDER_EMAIL, settings.SEED_SENDER_PASSWORD, UserRole.SENDER),
    ]

    created = 0
    for email, password, role in accounts:
        email = email.strip().lower()
        existing = db_session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()
        if existing:
            continue

        db_session.add(
            User(
                email=email,
                password=AuthUtils.hash_password(password),
                role=role,
                is_active=True,
            )
        )
        created += 1

    db_session.commit()
    logger.info(f"Seeded {created} users")
