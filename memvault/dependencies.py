"""FastAPI dependencies shared by the routers.

The storage engine and session store are process-wide singletons; the
services built on top of them are cheap and created per request. Tests swap
any of these through ``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from memvault.auth.service import AuthService
from memvault.auth.sessions import SessionContext, SessionStore
from memvault.config import get_config
from memvault.files.service import UploadService
from memvault.storage import StorageEngine

# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------

_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Return the global SessionStore, creating it from config on first use."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore(ttl_seconds=get_config().auth.session_ttl_seconds)
    return _session_store


def set_session_store(store: Optional[SessionStore]) -> None:
    """Set (or clear) the global SessionStore instance."""
    global _session_store
    _session_store = store


def get_engine() -> StorageEngine:
    return StorageEngine.get_instance(db_path=get_config().storage.db_path)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_auth_service(
    engine: StorageEngine = Depends(get_engine),
    sessions: SessionStore = Depends(get_session_store),
) -> AuthService:
    return AuthService(engine, sessions)


def get_upload_service(engine: StorageEngine = Depends(get_engine)) -> UploadService:
    return UploadService(engine, max_size_bytes=get_config().upload.max_size_bytes)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

_bearer = HTTPBearer(auto_error=False)


def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    sessions: SessionStore = Depends(get_session_store),
) -> SessionContext:
    """Resolve the caller's bearer token; anonymous if missing or unknown."""
    token = credentials.credentials if credentials else None
    return sessions.resolve(token)
