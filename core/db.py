"""
Database configuration
"""
import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session
from core.config import get_settings
from core.logger import logger

# Create engine lazily to allow test configuration to be applied
_engine = None

def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.
    """
    global _engine
    if _engine is None:
        _engine = create_engine(str(get_settings().SQLALCHEMY_DATABASE_URI), echo=False)
    return _engine

def reset_engine():
    """
    Reset the engine to None.
    This is useful for tests that need to switch between different settings.
    """
    global _engine
    _engine = None

def create_db_and_tables():
    """
    Create every table registered on the SQLModel metadata.
    """
    # Register table models on the metadata
    import api.auth.models  # noqa: F401
    import api.files.models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


def wait_for_store(
    session: Session,
    max_tries: int | None = None,
    delay_ms: int | None = None,
) -> bool:
    """
    Probe the metadata store with SELECT 1 until it answers.

    Gives up after max_tries attempts, sleeping delay_ms between them,
    so callers can degrade to their fallback instead of hanging.

    Returns:
        True once the store answers, False if it never did
    """
    settings = get_settings()
    if max_tries is None:
        max_tries = settings.STORE_READY_MAX_TRIES
    if delay_ms is None:
        delay_ms = settings.STORE_READY_DELAY_MS

    for attempt in range(1, max_tries + 1):
        try:
            session.connection().execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            session.rollback()
            logger.debug("Store not ready (attempt %d/%d): %s", attempt, max_tries, exc)
            if attempt < max_tries:
                time.sleep(delay_ms / 1000)

    logger.warning("Store still unavailable after %d attempts", max_tries)
    return False
