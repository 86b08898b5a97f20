"""Shared test fixtures and configuration for vault tests."""
import io
import random

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from memvault.auth.sessions import SessionStore
from memvault.dependencies import set_session_store
from memvault.main import app
from memvault.storage import StorageEngine


@pytest.fixture
def vault_db(tmp_path):
    """Path of a fresh DuckDB file; DuckDB creates it on first open."""
    return str(tmp_path / "vault.duckdb")


@pytest.fixture
def engine(vault_db):
    """A storage engine on its own temporary database."""
    engine = StorageEngine(db_path=vault_db)
    yield engine
    engine.close()


@pytest.fixture
def api_client(vault_db):
    """TestClient for the app, wired to a temporary database and empty sessions."""
    StorageEngine.reset_instance()
    StorageEngine.get_instance(db_path=vault_db)
    set_session_store(SessionStore())

    yield TestClient(app)

    app.dependency_overrides.clear()
    set_session_store(None)
    StorageEngine.reset_instance()


@pytest.fixture
def noise_image():
    """Factory for reproducible random-noise images (hard to compress)."""
    def _make(width: int, height: int, mode: str = "RGB", seed: int = 0) -> Image.Image:
        channels = len(mode)
        data = random.Random(seed).randbytes(width * height * channels)
        return Image.frombytes(mode, (width, height), data)
    return _make


@pytest.fixture
def encode():
    """Encode a PIL image to bytes in the given format."""
    def _encode(image: Image.Image, fmt: str) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()
    return _encode
