"""
Schema lifecycle helpers used by the app lifespan and by ``python -m app.db.db``.

Both take an explicit engine/session factory so they can run against any database,
defaulting to the configured one.
"""

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.config.settings import settings
from app.utils.logging import get_logger

from .models import Base
from .seeds.main import seed_all_data
from .session import SessionLocal, engine

logger = get_logger()


def create_tables(bind: Engine = engine):
    Base.metadata.create_all(bind)
    logger.info(
        "Ensured schema tables", tables=sorted(Base.metadata.tables), url=str(bind.url)
    )


def drop_tables(bind: Engine = engine):
    Base.metadata.drop_all(bind)
    logger.warning("Dropped schema tables", url=str(bind.url))


def reset_db(bind: Engine = engine, session_factory: sessionmaker = SessionLocal):
    """Drop and recreate every table, then seed accounts, groups and sample subscribers."""
    drop_tables(bind)
    create_tables(bind)
    seed_all_data(session_factory)
    logger.info(
        "Database reset complete",
        default_group=settings.DEFAULT_GROUP_NAME,
        admin=settings.SEED_ADMIN_EMAIL.lower(),
    )


if __name__ == "__main__":
    reset_db()
