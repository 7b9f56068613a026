"""
Authentication dependencies for protecting endpoints
"""
from typing import Annotated
import uuid

from fastapi import Depends
from fastapi.security import APIKeyHeader

from core.deps import SessionDep
from core.exceptions import Unauthenticated
from api.auth.services import resolve_owner

# Session token travels in the X-Token header
x_token_header = APIKeyHeader(name="X-Token", auto_error=False)


def get_current_owner(
    session: SessionDep,
    token: Annotated[str | None, Depends(x_token_header)]
) -> uuid.UUID:
    """
    Get the owner id of the authenticated caller

    Raises:
        Unauthenticated: If the token is missing or does not resolve
    """
    owner_id = resolve_owner(session=session, token=token)
    if owner_id is None:
        raise Unauthenticated()
    return owner_id


def optional_current_owner(
    session: SessionDep,
    token: Annotated[str | None, Depends(x_token_header)]
) -> uuid.UUID | None:
    """
    Get the owner id if a valid token is provided, None otherwise
    """
    return resolve_owner(session=session, token=token)


# Type aliases for cleaner endpoint signatures
CurrentOwner = Annotated[uuid.UUID, Depends(get_current_owner)]
OptionalOwner = Annotated[uuid.UUID | None, Depends(optional_current_owner)]
