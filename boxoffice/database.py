import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from boxoffice.core.config import settings
from boxoffice.models.base import Base

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, pool_pre_ping=True, echo=echo)


db_engine = build_engine(settings.DATABASE_URL, echo=settings.LOG_LEVEL.upper() == "DEBUG")

SessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    import boxoffice.models  # noqa: F401  registers tables on Base.metadata

    if settings.ENV == "dev":
        Base.metadata.create_all(bind=db_engine)
        logger.info("DEV: tables ensured with create_all()")
    else:
        logger.info("Using Alembic migrations, skipping create_all()")
