"""
Models for the Files API
"""

from enum import Enum
from typing import Any
import uuid
from sqlmodel import SQLModel, Field
from pydantic import AliasChoices, BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel

# Number of records per listing page
PAGE_SIZE = 20

# Wire representation of the root folder
ROOT_PARENT_ID = 0


class FileKind(str, Enum):
    """Kinds of record a user can create"""

    FOLDER = "folder"
    FILE = "file"
    IMAGE = "image"


class FileRecord(SQLModel, table=True):
    """
    Metadata for a folder, file or image owned by one user.

    parent_id is None for records at the root. content_ref locates the
    bytes in the blob store and is only set for files and images.
    """

    __tablename__ = "file_records"

    # Store-assigned and increasing, doubles as the creation-order sort key
    id: int | None = Field(default=None, primary_key=True)
    owner_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    kind: FileKind
    is_public: bool = Field(default=False)
    parent_id: int | None = Field(default=None, foreign_key="file_records.id", index=True)
    content_ref: str | None = Field(default=None, max_length=1024)

    model_config = ConfigDict(from_attributes=True)


class FileUpload(BaseModel):
    """
    Request body for creating a record.

    Fields take any JSON value here; the upload pipeline decides which
    rejection applies and in what order.
    """

    name: Any = None
    kind: Any = PydanticField(
        default=None, validation_alias=AliasChoices("kind", "type")
    )
    parent_id: Any = PydanticField(
        default=None, validation_alias=AliasChoices("parentId", "parent_id")
    )
    is_public: bool | None = PydanticField(
        default=False, validation_alias=AliasChoices("isPublic", "is_public")
    )
    # Base64-encoded content, required unless kind is folder
    data: Any = None


class FilePublic(BaseModel):
    """Public file representation, content_ref is never exposed"""

    id: int
    owner_id: uuid.UUID
    name: str
    kind: FileKind
    is_public: bool
    parent_id: int = ROOT_PARENT_ID

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_validator("parent_id", mode="before")
    @classmethod
    def root_as_zero(cls, value):
        return ROOT_PARENT_ID if value is None else value
