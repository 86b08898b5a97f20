"""Pydantic schemas and upload policy for the files module.

This module defines:
- FileType: Enum for categorizing uploads (image, video)
- ALLOWED_MIME_TYPES: The upload allow-list, grouped by FileType
- FileUploadResponse: API response after a successful upload
- FileListItem: One entry of the owner's file list
- ShareLinkResponse: Reference link to a stored file

Only images can be compressed; a video over the size limit is rejected.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class FileType(str, Enum):
    """Supported upload categories."""
    IMAGE = "image"
    VIDEO = "video"


# File size limit: 10MB
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

ALLOWED_MIME_TYPES = {
    FileType.IMAGE: [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    ],
    FileType.VIDEO: [
        "video/mp4",
        "video/webm",
    ],
}


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Strip parameters and case from a media type (``"Video/WebM; codecs=vp9"`` -> ``"video/webm"``)."""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def get_file_type(mime_type: str) -> Optional[FileType]:
    """Return the FileType for an allowed media type, or None if not allowed.

    Examples:
        >>> get_file_type("image/png")
        <FileType.IMAGE: 'image'>
        >>> get_file_type("application/pdf") is None
        True
    """
    for file_type, mime_types in ALLOWED_MIME_TYPES.items():
        if mime_type in mime_types:
            return file_type
    return None


class FileUploadResponse(BaseModel):
    """Response after a successful upload.

    ``compressed`` tells the client the stored file differs from what was
    sent: the name, media type and size then describe the re-encoded image.
    """
    id: str = Field(..., description="File ID")
    name: str = Field(..., description="Stored file name")
    mime_type: str = Field(..., description="Stored media type")
    size: int = Field(..., description="Stored size in bytes")
    created_at: float = Field(..., description="Upload timestamp")
    compressed: bool = Field(False, description="Whether the image was re-encoded to fit")
    share_url: str = Field(..., description="Reference link to view the file")


class FileListItem(BaseModel):
    id: str
    name: str
    mime_type: str
    size: int
    created_at: float
    file_type: Optional[FileType] = None


class ShareLinkResponse(BaseModel):
    id: str
    share_url: str = Field(..., description="Works against this vault only")
