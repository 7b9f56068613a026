"""
Services for the Files API
"""

import base64
import binascii
from collections.abc import Callable
import mimetypes
import re
from typing import Any
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from api.files.models import PAGE_SIZE, FileKind, FileRecord, FileUpload
from core.db import wait_for_store
from core.exceptions import (
    FolderHasNoContent,
    InvalidData,
    InvalidType,
    MissingData,
    MissingName,
    NotFound,
    ParentNotFolder,
    ParentNotFound,
    StorageFault,
)
from core.logger import logger
from core.storage import BlobStore, BlobStoreError

# Record ids are positive integers without leading zeros
_RECORD_ID_PATTERN = re.compile(r"[1-9][0-9]*")

# Largest value the store can bind as an integer
MAX_STORE_INT = 2**63 - 1

# Legacy spellings of "no parent"
_ROOT_REFS = (None, 0, "0")


def parse_record_id(raw_id: int | str) -> int:
    """
    Parse a caller supplied record id.

    Raises:
        ValueError: If raw_id cannot name a record
    """
    if isinstance(raw_id, bool):
        raise ValueError(f"Invalid record id: {raw_id!r}")
    if isinstance(raw_id, str) and _RECORD_ID_PATTERN.fullmatch(raw_id):
        raw_id = int(raw_id)
    if isinstance(raw_id, int) and 1 <= raw_id <= MAX_STORE_INT:
        return raw_id
    raise ValueError(f"Invalid record id: {raw_id!r}")


def normalize_parent_ref(raw_parent_ref: Any) -> int | None:
    """
    Map a caller supplied parent reference onto a parent id.

    Returns:
        None for the root, otherwise the parent record id

    Raises:
        ValueError: If the reference is neither the root nor a record id
    """
    if raw_parent_ref is None or (
        type(raw_parent_ref) in (int, str) and raw_parent_ref in _ROOT_REFS
    ):
        return None
    return parse_record_id(raw_parent_ref)


def parse_page(raw_page: int | str | None) -> int:
    """Page index from a query value; anything unusable reads as 0."""
    try:
        page = int(raw_page)
    except (TypeError, ValueError):
        return 0
    return max(page, 0)


###############################################################################
# Metadata registry
###############################################################################


def create_record(*, session: Session, record: FileRecord) -> FileRecord:
    """
    Persist a new record. The store assigns its id.
    """
    session.add(record)
    session.commit()
    session.refresh(record)
    logger.info(
        "Created %s record %d for owner %s", record.kind.value, record.id, record.owner_id
    )
    return record


def get_owned(*, session: Session, file_id: int | str, owner_id: uuid.UUID) -> FileRecord:
    """
    Fetch a record belonging to owner_id.

    A record owned by someone else is reported exactly like a
    missing one.

    Raises:
        NotFound: If no such record is visible to owner_id
    """
    try:
        record_id = parse_record_id(file_id)
    except ValueError as exc:
        raise NotFound() from exc

    record = session.exec(
        select(FileRecord)
        .where(FileRecord.id == record_id)
        .where(FileRecord.owner_id == owner_id)
    ).one_or_none()
    if record is None:
        raise NotFound()
    return record


def get_any(*, session: Session, file_id: int | str) -> FileRecord:
    """
    Fetch a record regardless of owner.
    Only for callers that authorize access themselves.

    Raises:
        NotFound: If the record does not exist
    """
    try:
        record_id = parse_record_id(file_id)
    except ValueError as exc:
        raise NotFound() from exc

    record = session.get(FileRecord, record_id)
    if record is None:
        raise NotFound()
    return record


def set_visibility(
    *, session: Session, file_id: int | str, owner_id: uuid.UUID, is_public: bool
) -> FileRecord:
    """
    Publish or unpublish a record and return it as stored.

    Raises:
        NotFound: If no such record is visible to owner_id
    """
    if not wait_for_store(session):
        raise NotFound()

    try:
        record = get_owned(session=session, file_id=file_id, owner_id=owner_id)
        record_id = record.id
        record.is_public = is_public
        session.add(record)
        session.commit()

        # Re-read so the caller sees exactly what the store now holds
        return get_owned(session=session, file_id=record_id, owner_id=owner_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Visibility update failed for record %s: %s", file_id, exc)
        raise NotFound() from exc


def list_records(
    *,
    session: Session,
    owner_id: uuid.UUID,
    parent_id: int | None,
    offset: int,
    limit: int,
) -> list[FileRecord]:
    """
    Records of owner_id directly under parent_id, in creation order.
    """
    statement = select(FileRecord).where(FileRecord.owner_id == owner_id)
    if parent_id is None:
        statement = statement.where(FileRecord.parent_id.is_(None))
    else:
        statement = statement.where(FileRecord.parent_id == parent_id)

    return list(
        session.exec(
            statement.order_by(FileRecord.id.asc()).offset(offset).limit(limit)
        ).all()
    )


def show_file(*, session: Session, file_id: int | str, owner_id: uuid.UUID) -> FileRecord:
    """
    Owner-scoped single record read.

    Raises:
        NotFound: If the store is unavailable or the record is not visible
    """
    if not wait_for_store(session):
        raise NotFound()

    try:
        return get_owned(session=session, file_id=file_id, owner_id=owner_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Lookup failed for record %s: %s", file_id, exc)
        raise NotFound() from exc


###############################################################################
# Listing
###############################################################################


def get_page(
    *,
    session: Session,
    owner_id: uuid.UUID,
    raw_parent_ref: int | str | None = None,
    raw_page: int | str | None = None,
) -> list[FileRecord]:
    """
    One page of owner_id's records under a parent.

    Never fails for caller input: a malformed parent reference or an
    unavailable store both produce an empty page.
    """
    page = parse_page(raw_page)
    if page * PAGE_SIZE > MAX_STORE_INT:
        logger.debug("Page %d is past any stored record, returning empty page", page)
        return []
    try:
        parent_id = normalize_parent_ref(raw_parent_ref or None)
    except ValueError:
        logger.debug("Malformed parent reference %r, returning empty page", raw_parent_ref)
        return []

    if not wait_for_store(session):
        return []

    try:
        return list_records(
            session=session,
            owner_id=owner_id,
            parent_id=parent_id,
            offset=page * PAGE_SIZE,
            limit=PAGE_SIZE,
        )
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Listing failed for owner %s: %s", owner_id, exc)
        return []


###############################################################################
# Hierarchy validation
###############################################################################


def validate_parent(*, session: Session, raw_parent_ref: int | str | None) -> int | None:
    """
    Check that a claimed parent can hold children.

    Returns:
        None for the root, otherwise the id of the parent folder

    Raises:
        ParentNotFound: If the reference is malformed or names no record
        ParentNotFolder: If the referenced record is not a folder
    """
    try:
        parent_id = normalize_parent_ref(raw_parent_ref)
    except ValueError as exc:
        raise ParentNotFound() from exc

    if parent_id is None:
        return None

    parent = session.get(FileRecord, parent_id)
    if parent is None:
        raise ParentNotFound()
    if parent.kind != FileKind.FOLDER:
        raise ParentNotFolder()
    return parent_id


###############################################################################
# Upload
###############################################################################


def _require_name(file_in: FileUpload) -> None:
    if not file_in.name:
        raise MissingName()


def _require_kind(file_in: FileUpload) -> None:
    if not isinstance(file_in.kind, str) or file_in.kind not in {kind.value for kind in FileKind}:
        raise InvalidType()


def _require_data(file_in: FileUpload) -> None:
    if file_in.kind == FileKind.FOLDER.value:
        return
    if not isinstance(file_in.data, str) or not file_in.data:
        raise MissingData()


# Input checks, applied in order; the first failure wins
UPLOAD_CHECKS: tuple[Callable[[FileUpload], None], ...] = (
    _require_name,
    _require_kind,
    _require_data,
)


def _decode_payload(data: str) -> bytes:
    try:
        # Line-wrapped base64 is accepted, anything else outside the alphabet is not
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidData() from exc


def upload_file(
    *,
    session: Session,
    blob_store: BlobStore,
    owner_id: uuid.UUID,
    file_in: FileUpload,
) -> FileRecord:
    """
    Validate an upload, store its content and record its metadata.

    Nothing is written to the blob store until every check has passed,
    and no record is created if the blob write fails.

    Raises:
        InvalidInput: For a missing name, an invalid kind, or missing/undecodable data
        HierarchyError: If the parent is missing or not a folder
        StorageFault: If the content or its record could not be stored
    """
    for check in UPLOAD_CHECKS:
        check(file_in)

    try:
        parent_id = validate_parent(session=session, raw_parent_ref=file_in.parent_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Parent lookup failed for %r: %s", file_in.parent_id, exc)
        raise StorageFault() from exc

    record = FileRecord(
        owner_id=owner_id,
        name=str(file_in.name),
        kind=FileKind(file_in.kind),
        is_public=bool(file_in.is_public),
        parent_id=parent_id,
    )

    if record.kind == FileKind.FOLDER:
        return _insert_record(session, record)

    payload = _decode_payload(file_in.data)
    try:
        record.content_ref = blob_store.write(payload)
    except BlobStoreError as exc:
        logger.exception("Failed to store content for %s", record.name)
        raise StorageFault() from exc

    try:
        return _insert_record(session, record)
    except StorageFault:
        _discard_blob(blob_store, record.content_ref)
        raise


def _insert_record(session: Session, record: FileRecord) -> FileRecord:
    try:
        return create_record(session=session, record=record)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to record %s for owner %s", record.name, record.owner_id)
        raise StorageFault() from exc


def _discard_blob(blob_store: BlobStore, ref: str) -> None:
    """Best-effort removal of a blob whose record was never created."""
    try:
        blob_store.delete(ref)
        logger.info("Rolled back blob %s", ref)
    except BlobStoreError:
        logger.exception("Failed to roll back blob, orphaned: %s", ref)


###############################################################################
# Content retrieval
###############################################################################


def may_read_content(record: FileRecord, caller_owner_id: uuid.UUID | None) -> bool:
    """Public records are open to anyone, private ones only to their owner."""
    if record.is_public:
        return True
    return caller_owner_id is not None and caller_owner_id == record.owner_id


def content_type_for(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    if mime_type is None:
        return "application/octet-stream"
    if mime_type.startswith("text/"):
        return f"{mime_type}; charset=utf-8"
    return mime_type


def get_content(
    *,
    session: Session,
    blob_store: BlobStore,
    file_id: int | str,
    caller_owner_id: uuid.UUID | None,
) -> tuple[bytes, str]:
    """
    Raw content of a record and its content type.

    Visibility is checked before the folder check, so a private folder
    of another user reads as not found.

    Raises:
        NotFound: If the record is missing, not readable by the caller,
            or its content cannot be read
        FolderHasNoContent: If the record is a folder
    """
    if not wait_for_store(session):
        raise NotFound()

    try:
        record = get_any(session=session, file_id=file_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Lookup failed for record %s: %s", file_id, exc)
        raise NotFound() from exc

    if not may_read_content(record, caller_owner_id):
        raise NotFound()

    if record.kind == FileKind.FOLDER:
        raise FolderHasNoContent()

    if not record.content_ref:
        raise NotFound()

    try:
        content = blob_store.read(record.content_ref)
    except BlobStoreError as exc:
        logger.warning("Content for record %d unavailable: %s", record.id, exc)
        raise NotFound() from exc

    return content, content_type_for(record.name)
