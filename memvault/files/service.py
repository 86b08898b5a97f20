"""Upload orchestration and owner-scoped file access.

An upload is admitted only if its media type is on the allow-list. Images
over the size limit go through the compression pipeline first; anything else
over the limit is rejected. The resulting record is written with a single
``put_file`` call, whose errors are passed through untouched.

Every read and delete is scoped to the session's identity: another owner's
file looks exactly like a missing one.
"""
import asyncio
import logging
import time
import uuid
from typing import List, Optional, Tuple

from memvault.compression import compress_image
from memvault.auth.sessions import SessionContext
from memvault.errors import NotAuthenticated, NotFound, SizeLimitExceeded, UnsupportedType
from memvault.storage import FileRecord, FileSummary, StorageEngine

from .schemas import MAX_FILE_SIZE_BYTES, FileType, get_file_type, normalize_mime_type

logger = logging.getLogger(__name__)


def _require_identity(session: SessionContext) -> str:
    identity = session.current_identity()
    if not identity:
        raise NotAuthenticated()
    return identity


class UploadService:
    """Service for admitting, storing and retrieving a user's files.

    Args:
        engine: Storage engine that persists the records.
        max_size_bytes: Byte budget for a stored payload.
    """

    def __init__(self, engine: StorageEngine, max_size_bytes: int = MAX_FILE_SIZE_BYTES) -> None:
        self._engine = engine
        self._max_size_bytes = max_size_bytes

    @property
    def max_size_bytes(self) -> int:
        return self._max_size_bytes

    def admit(self, session: SessionContext, mime_type: Optional[str]) -> Tuple[str, str, FileType]:
        """Check who is uploading and what, before any payload is read.

        Returns:
            (owner, normalized media type, file type)

        Raises:
            NotAuthenticated: If the session has no identity.
            UnsupportedType: If the media type is not allowed.
        """
        owner = _require_identity(session)
        mime_type = normalize_mime_type(mime_type)
        file_type = get_file_type(mime_type)
        if file_type is None:
            raise UnsupportedType(mime_type)
        return owner, mime_type, file_type

    async def upload(
        self,
        session: SessionContext,
        name: str,
        mime_type: Optional[str],
        payload: bytes,
    ) -> FileRecord:
        """Validate, compress if needed, and store an uploaded file.

        Args:
            session: Context of the uploading user.
            name: Original file name.
            mime_type: Declared media type of the upload.
            payload: File content.

        Returns:
            The stored FileRecord. Its name, media type and size describe the
            re-encoded image when compression was needed.

        Raises:
            NotAuthenticated: If the session has no identity.
            UnsupportedType: If the media type is not allowed.
            SizeLimitExceeded: If a non-image payload is over the limit.
            CompressionExhausted: If an image cannot be brought under the limit.
            ImageDecodeError: If an oversized image cannot be decoded.
        """
        owner, mime_type, file_type = self.admit(session, mime_type)

        if len(payload) > self._max_size_bytes:
            if file_type is not FileType.IMAGE:
                raise SizeLimitExceeded(len(payload), self._max_size_bytes)

            logger.info(
                "Compressing %s (%d bytes) to fit %d bytes",
                name, len(payload), self._max_size_bytes,
            )
            compressed = await asyncio.to_thread(
                compress_image, payload, mime_type, name, self._max_size_bytes
            )
            name, mime_type, payload = compressed.name, compressed.mime_type, compressed.payload

        record = FileRecord(
            id=str(uuid.uuid4()),
            owner=owner,
            name=name,
            mime_type=mime_type,
            size=len(payload),
            created_at=time.time(),
            payload=payload,
        )
        await self._engine.put_file(record)

        logger.info(f"File uploaded: {record.name} ({record.size} bytes) for {owner}")
        return record

    async def list_files(self, session: SessionContext) -> List[FileSummary]:
        """Return the session owner's files, newest first."""
        owner = _require_identity(session)
        summaries = await self._engine.list_file_summaries(owner)
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    async def get_file(self, session: SessionContext, file_id: str) -> FileRecord:
        """Return one of the session owner's files, payload included."""
        owner = _require_identity(session)
        record = await self._engine.get_file_by_id(file_id)
        if record is None or record.owner != owner:
            raise NotFound()
        return record

    async def delete_file(self, session: SessionContext, file_id: str) -> None:
        """Delete one of the session owner's files."""
        record = await self.get_file(session, file_id)
        await self._engine.delete_file(record.id)
        logger.info(f"Deleted file {record.id} for {record.owner}")

    async def clear_files(self, session: SessionContext) -> int:
        """Delete all of the session owner's files.

        Not atomic; see ``StorageEngine.clear_files_by_owner``.
        """
        owner = _require_identity(session)
        return await self._engine.clear_files_by_owner(owner)

    @staticmethod
    def share_path(file_id: str) -> str:
        """Path of the view link for *file_id*.

        The link only resolves against this vault, for the file's owner.
        """
        return f"/files/{file_id}/view"
