"""
Configure generic models not specific
to a particular feature.
"""

from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    error: str
