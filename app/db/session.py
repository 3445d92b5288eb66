from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.config.settings import settings

_is_sqlite = str(settings.DATABASE_URL).startswith("sqlite")

engine = create_engine(
    str(settings.DATABASE_URL),
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=False,
    **({} if _is_sqlite else {"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600}),
)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_sync_session():
    """Dependency to get sync database session"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
