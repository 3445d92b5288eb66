from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Group
from app.services.group_service import get_or_create_default_group
from app.utils.logging import get_logger

logger = get_logger()

SEED_GROUPS = [
    ("VIP Users", "High-value subscribers with premium features"),
]


def seed_groups(db_session: Session):
    """Sync version: Seed the default group plus sample groups (skips existing)"""

    get_or_create_default_group(db_session)

    created = 0
    for name, description in SEED_GROUPS:
        existing = db_session.execute(
            select(Group).where(Group.name == name)
        ).scalar_one_or_none()
        if existing:
            continue
        db_session.add(Group(name=name, description=description))
        created += 1

    db_session.commit()
    logger.info(f"Seeded {created} groups")
