"""FastAPI router for the vault's file endpoints.

All endpoints act on the files of the session's user; a missing or unknown
bearer token answers 401.
"""
import logging
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile, status

from memvault.auth.sessions import SessionContext
from memvault.dependencies import get_session, get_upload_service
from memvault.errors import VaultError

from .schemas import FileListItem, FileUploadResponse, ShareLinkResponse, get_file_type
from .service import UploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


def get_share_url(request: Request, file_id: str) -> str:
    """Absolute view link for a file."""
    base_url = str(request.base_url).rstrip("/")
    return f"{base_url}{UploadService.share_path(file_id)}"


def _content_disposition(kind: str, filename: str) -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "")
    return f"{kind}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _http_error(exc: VaultError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.post("/upload", response_model=FileUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> FileUploadResponse:
    """Upload a file to the vault.

    Supported file types:
    - Images: jpeg, png, webp, gif (re-encoded as JPEG when over the limit)
    - Video: mp4, webm (rejected when over the limit)

    Raises:
        HTTPException 401: If not logged in
        HTTPException 413: If a video exceeds the size limit
        HTTPException 415: If the file type is not supported
        HTTPException 422: If an image cannot be compressed under the limit
    """
    filename = file.filename or "unnamed"

    try:
        # Refuse before the body is read into memory
        svc.admit(session, file.content_type)
        content = await file.read()
        record = await svc.upload(session, filename, file.content_type, content)
    except VaultError as exc:
        logger.info(f"Upload of {filename} rejected: {exc.message}")
        raise _http_error(exc) from exc

    return FileUploadResponse(
        id=record.id,
        name=record.name,
        mime_type=record.mime_type,
        size=record.size,
        created_at=record.created_at,
        compressed=len(content) != record.size,
        share_url=get_share_url(request, record.id),
    )


@router.get("", response_model=List[FileListItem])
async def list_files(
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> List[FileListItem]:
    """List the user's files, newest first."""
    try:
        summaries = await svc.list_files(session)
    except VaultError as exc:
        raise _http_error(exc) from exc

    return [
        FileListItem(**s.model_dump(), file_type=get_file_type(s.mime_type))
        for s in summaries
    ]


@router.get("/{file_id}/view")
async def view_file(
    file_id: str,
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> Response:
    """Return the file content for display in the browser."""
    try:
        record = await svc.get_file(session, file_id)
    except VaultError as exc:
        raise _http_error(exc) from exc

    return Response(
        content=record.payload,
        media_type=record.mime_type,
        headers={"Content-Disposition": _content_disposition("inline", record.name)},
    )


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> Response:
    """Return the file content as an attachment named after the stored file."""
    try:
        record = await svc.get_file(session, file_id)
    except VaultError as exc:
        raise _http_error(exc) from exc

    return Response(
        content=record.payload,
        media_type=record.mime_type,
        headers={"Content-Disposition": _content_disposition("attachment", record.name)},
    )


@router.get("/{file_id}/share", response_model=ShareLinkResponse)
async def share_file(
    request: Request,
    file_id: str,
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> ShareLinkResponse:
    """Return a reference link to the file.

    The link points back at this vault; it does not grant access to anyone
    who is not logged in as the owner.
    """
    try:
        record = await svc.get_file(session, file_id)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return ShareLinkResponse(id=record.id, share_url=get_share_url(request, record.id))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> Response:
    try:
        await svc.delete_file(session, file_id)
    except VaultError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("")
async def clear_files(
    session: SessionContext = Depends(get_session),
    svc: UploadService = Depends(get_upload_service),
) -> dict:
    """Delete all of the user's files.

    Files are removed one at a time; if a delete fails, the ones removed
    before it stay removed.
    """
    try:
        count = await svc.clear_files(session)
    except VaultError as exc:
        raise _http_error(exc) from exc

    logger.info(f"Deleted {count} files for {session.identity}")
    return {"deleted_count": count}
