"""Memory Vault Backend Application.

This is the main entry point for the Memory Vault service: a personal file
vault where users register, log in, and keep their media files in an
embedded DuckDB store.

Modules:
    - auth: email/password accounts and in-memory sessions
    - files: upload admission, listing, download and deletion
    - compression: re-encoding oversized images to fit the size limit
    - storage: the DuckDB-backed users/files collections
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from memvault.auth.router import router as auth_router
from memvault.config import get_config
from memvault.errors import StoreUnavailable
from memvault.files.router import router as files_router
from memvault.storage import StorageEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Pillow logs every plugin it probes at DEBUG; httpx/httpcore log every
# connection made by the test client.
for _noisy in (
    "PIL",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    engine = StorageEngine.get_instance(db_path=config.storage.db_path)
    try:
        handle = await engine.initialize()
        logger.info(f"Vault store ready: {handle.path} (schema v{handle.schema_version})")
    except StoreUnavailable as exc:
        # Requests keep retrying the open lazily and answer 503 meanwhile
        logger.error(f"Vault store unavailable at startup: {exc}")

    yield  # Application runs here

    # Shutdown
    StorageEngine.reset_instance()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Memory Vault API",
    description="Personal file vault with adaptive image compression",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(auth_router)
app.include_router(files_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "memvault.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
        log_level=config.logging.level,
    )
