"""
Routes/endpoints for the Files API
"""

import io

from fastapi import APIRouter, Query, status
from fastapi.responses import StreamingResponse

from api.auth.deps import CurrentOwner, OptionalOwner
from api.files import services
from api.files.models import FilePublic, FileUpload
from core.deps import BlobStoreDep, SessionDep
from core.models import ErrorResponse

router = APIRouter(prefix="/files", tags=["File Endpoints"])

###############################################################################
# Files Endpoints /api/v1/files/
###############################################################################


@router.post(
    "",
    response_model=FilePublic,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def upload_file(
    session: SessionDep,
    blob_store: BlobStoreDep,
    owner_id: CurrentOwner,
    file_in: FileUpload,
) -> FilePublic:
    """
    Create a folder, or upload a file or image with base64 encoded data.
    """
    record = services.upload_file(
        session=session, blob_store=blob_store, owner_id=owner_id, file_in=file_in
    )
    return FilePublic.model_validate(record)


@router.get("", response_model=list[FilePublic])
def list_files(
    session: SessionDep,
    owner_id: CurrentOwner,
    parent_id: str | None = Query(
        None, alias="parentId", description="Parent folder id, 0 or absent for the root"
    ),
    page: str | None = Query(None, description="Page number (0-indexed, 20 per page)"),
) -> list[FilePublic]:
    """
    Returns one page of the caller's records under a folder.
    """
    records = services.get_page(
        session=session, owner_id=owner_id, raw_parent_ref=parent_id, raw_page=page
    )
    return [FilePublic.model_validate(record) for record in records]


@router.get(
    "/{file_id}",
    response_model=FilePublic,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_file(session: SessionDep, owner_id: CurrentOwner, file_id: str) -> FilePublic:
    """
    Returns a single record owned by the caller.
    """
    record = services.show_file(session=session, file_id=file_id, owner_id=owner_id)
    return FilePublic.model_validate(record)


@router.put(
    "/{file_id}/publish",
    response_model=FilePublic,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def publish_file(session: SessionDep, owner_id: CurrentOwner, file_id: str) -> FilePublic:
    """
    Make a record's content readable by anyone.
    """
    record = services.set_visibility(
        session=session, file_id=file_id, owner_id=owner_id, is_public=True
    )
    return FilePublic.model_validate(record)


@router.put(
    "/{file_id}/unpublish",
    response_model=FilePublic,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def unpublish_file(session: SessionDep, owner_id: CurrentOwner, file_id: str) -> FilePublic:
    """
    Restrict a record's content to its owner.
    """
    record = services.set_visibility(
        session=session, file_id=file_id, owner_id=owner_id, is_public=False
    )
    return FilePublic.model_validate(record)


@router.get(
    "/{file_id}/data",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_file_data(
    session: SessionDep,
    blob_store: BlobStoreDep,
    owner_id: OptionalOwner,
    file_id: str,
) -> StreamingResponse:
    """
    Download the raw content of a file or image.

    Public records need no token; private ones only open to their owner.
    """
    content, content_type = services.get_content(
        session=session,
        blob_store=blob_store,
        file_id=file_id,
        caller_owner_id=owner_id,
    )
    return StreamingResponse(io.BytesIO(content), media_type=content_type)
