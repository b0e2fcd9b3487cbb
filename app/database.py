# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite for tests and local runs).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from app.config import settings
from app.services.exceptions import StorageUnavailable
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool   # one shared in-memory DB
        return options
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,                  # Set True to log all SQL queries (debug only)
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Commit everything done inside the block as one transaction, or nothing.
    Connection-level failures surface as StorageUnavailable; every other
    exception is re-raised unchanged after the rollback.
    """
    try:
        yield db
        db.commit()
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        logger.error(f"[DB] Storage unavailable, transaction rolled back: {e}")
        raise StorageUnavailable("Database unavailable; nothing was recorded") from e
    except Exception:
        db.rollback()
        raise


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.access_event import AccessEvent                        # noqa
    from app.models.visitor import Visitor                                  # noqa
    from app.models.vehicle_movement import VehicleMovementStatus           # noqa

    Base.metadata.create_all(bind=engine)
