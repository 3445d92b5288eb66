"""
Main seeding file that orchestrates all database seeding operations.

Every seed is get-or-create so running it twice leaves the data unchanged.
"""

from sqlalchemy.orm import sessionmaker

from app.db.session import SessionLocal
from app.utils.logging import get_logger

from .users_seed import seed_users
from .groups_seed import seed_groups
from .subscribers_seed import seed_subscribers

logger = get_logger()


def seed_all_data(session_factory: sessionmaker = SessionLocal):
    """
    Sync version: Seed all database tables in dependency order.

    Groups must exist before subscribers are attached to them.
    """

    db_session = session_factory()
    try:
        logger.info("Starting database seeding...")

        seed_users(db_session)
        seed_groups(db_session)
        seed_subscribers(db_session)  # Depends on groups

        logger.info("Database seeding completed successfully!")
        return True

    except Exception as e:
        logger.error(f"Database seeding failed: {str(e)}")
        db_session.rollback()
        raise e
    finally:
        db_session.close()
