"""SQLAlchemy engine and session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from setup_screener.config import settings

# Pipeline workers read history from pool threads.
_connect_args = {"check_same_thread": False} if settings.db_url.startswith("sqlite") else {}

engine = create_engine(settings.db_url, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine)


class Base(DeclarativeBase):
    pass


def get_session() -> Session:
    return SessionLocal()


def init_db():
    """Create all tables."""
    from setup_screener.models import ticker, snapshot, pick  # noqa: F401
    Base.metadata.create_all(engine)
