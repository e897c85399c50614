from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from leadhub.config import settings


class Base(DeclarativeBase):
    pass


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
    }


def get_engine(url: str | None = None):
    url = url or settings.database_url
    return create_engine(url, **_engine_options(url))


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Request-scoped session; routes and webhook handlers depend on this."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
