from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Group, Subscriber
from app.services.group_service import get_or_create_default_group
from app.utils.logging import get_logger

logger = get_logger()

# external id, contact, extra group names, member of the default group
SEED_SUBSCRIBERS = [
    ("sample-player-1", "+1234567890", ["VIP Users"], True),
    ("sample-player-2", "+1987654321", [], True),
    ("sample-player-3", "+1122334455", ["VIP Users"], False),
]


def seed_subscribers(db_session: Session):
    """Sync version: Seed sample subscribers and their memberships (skips existing)"""

    default_group = get_or_create_default_group(db_session)
    groups_by_name = {
        g.name: g for g in db_session.execute(select(Group)).scalars().all()
    }

    created = 0
    for external_id, contact, group_names, in_default in SEED_SUBSCRIBERS:
        existing = db_session.execute(
            select(Subscriber).where(Subscriber.external_id == external_id)
        ).scalar_one_or_none()
        if existing:
            continue

        subscriber = Subscriber(external_id=external_id, contact=contact)
        if in_default:
            subscriber.groups.append(default_group)
        for name in group_names:
            if name in groups_by_name:
                subscriber.groups.append(groups_by_name[name])

        db_session.add(subscriber)
        created += 1

    db_session.commit()
    logger.info(f"Seeded {created} subscribers")
