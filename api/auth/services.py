"""
Authentication service layer for resolving callers
"""
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from api.auth.models import AuthSession
from core.db import wait_for_store
from core.logger import logger


def resolve_owner(*, session: Session, token: str | None) -> uuid.UUID | None:
    """
    Resolve a session token to the id of the user that owns it

    Fails closed: an absent token, an unknown token, a corrupt
    session row or an unavailable store all yield None.

    Args:
        session: Database session
        token: Opaque token supplied by the caller

    Returns:
        Owner id, or None if the caller is not authenticated
    """
    if not token:
        return None

    if not wait_for_store(session):
        logger.warning("Session store unavailable, rejecting token")
        return None

    try:
        auth_session = session.get(AuthSession, token)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Session lookup failed: %s", exc)
        return None

    if auth_session is None:
        return None

    try:
        return uuid.UUID(auth_session.user_id)
    except ValueError:
        logger.warning("Session %s... holds a malformed user id", token[:6])
        return None
