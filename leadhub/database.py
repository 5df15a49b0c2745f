from sqlalchemy import create_engine
from sqlalchemy.exc import ProgrammingError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator

# Import centralized configuration
from leadhub.config import settings
from leadhub.obs.logging import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.DATABASE_URL

if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)


def _engine_options(url: str) -> dict:
    """Pool configuration; sqlite uses its own single-file pool."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,  # Normal connections (adjust based on load)
        "max_overflow": 40,  # Burst capacity (total = 60 connections max)
        "pool_timeout": 30,  # Wait 30s for connection before failing
        "pool_recycle": 1800,  # Recycle connections every 30 minutes
        "pool_pre_ping": True,  # Verify connections before use
    }


engine = create_engine(DATABASE_URL, echo=settings.DEBUG_SQL, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import all models here so that Base knows about them
    from .models import (  # noqa: F401
        admin_settings,
        audit_log,
        lead,
        lead_status_history,
        partner,
        partner_assignment,
    )

    # SQLite raises OperationalError, PostgreSQL raises ProgrammingError
    try:
        Base.metadata.create_all(bind=bind or engine)
    except (ProgrammingError, OperationalError) as e:
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        if "already exists" not in error_msg.lower() and "duplicate" not in error_msg.lower():
            raise
        logger.info(f"Some indexes/tables already exist: {error_msg[:100]}")
