"""
Authentication models for caller sessions
"""
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel
from pydantic import ConfigDict


class AuthSession(SQLModel, table=True):
    """
    Session issued by the login service.
    Maps an opaque token to the user that owns it.
    """

    __tablename__ = "auth_sessions"

    token: str = Field(primary_key=True, max_length=255)
    user_id: str = Field(index=True, max_length=36)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)
