"""Pydantic records stored by the storage engine.

- UserRecord: a registered account, keyed by email
- FileRecord: an uploaded file including its payload, keyed by id
- FileSummary: a FileRecord without the payload, used for listings
"""
import time
import uuid

from pydantic import BaseModel, Field, model_validator


class UserRecord(BaseModel):
    """A registered user.

    The password is an opaque credential compared as given; it is never
    hashed by the vault.
    """
    email: str = Field(..., description="Unique identity key")
    password: str = Field(..., description="Credential, stored as given")
    created_at: float = Field(default_factory=time.time, description="Registration timestamp")


class FileSummary(BaseModel):
    id: str = Field(..., description="Unique file ID")
    owner: str = Field(..., description="Email of the owning user")
    name: str = Field(..., description="File name shown to the user")
    mime_type: str = Field(..., description="Media type of the stored payload")
    size: int = Field(..., ge=0, description="Payload size in bytes")
    created_at: float = Field(..., description="Upload timestamp")


class FileRecord(BaseModel):
    """A stored file.

    ``size`` always equals ``len(payload)``; a record violating this is
    rejected at construction.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique file ID")
    owner: str = Field(..., description="Email of the owning user")
    name: str = Field(..., description="File name shown to the user")
    mime_type: str = Field(..., description="Media type of the stored payload")
    size: int = Field(..., ge=0, description="Payload size in bytes")
    created_at: float = Field(default_factory=time.time, description="Upload timestamp")
    payload: bytes = Field(..., repr=False, description="File content")

    @model_validator(mode="after")
    def _size_matches_payload(self) -> "FileRecord":
        if self.size != len(self.payload):
            raise ValueError(
                f"size ({self.size}) does not match payload length ({len(self.payload)})"
            )
        return self

    def summary(self) -> FileSummary:
        return FileSummary(**self.model_dump(exclude={"payload"}))
