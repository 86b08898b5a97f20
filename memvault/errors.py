"""Domain errors for the vault.

Every error carries the HTTP status code the routers answer with, so the
services can raise them without knowing anything about FastAPI.
"""


class VaultError(Exception):
    """Base exception for vault errors."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StoreUnavailable(VaultError):
    """Raised when the embedded store cannot be opened."""
    def __init__(self, message: str = "Storage is unavailable"):
        super().__init__(message, status_code=503)


class DuplicateKey(VaultError):
    """Raised when inserting a record whose key already exists."""
    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} record '{key}' already exists", status_code=409)


class UnsupportedType(VaultError):
    """Raised when an upload's media type is not on the allow-list."""
    def __init__(self, mime_type: str):
        self.mime_type = mime_type
        super().__init__(f"Unsupported file type: {mime_type or 'unknown'}", status_code=415)


class SizeLimitExceeded(VaultError):
    """Raised when a payload is over budget and cannot be compressed."""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File size ({size} bytes) exceeds limit ({limit} bytes)",
            status_code=413,
        )


class CompressionError(VaultError):
    """Base exception for compression pipeline failures."""
    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class ImageDecodeError(CompressionError):
    """Raised when the source payload is not a decodable image."""


class CompressionExhausted(CompressionError):
    """Raised when no quality step brings the image under budget."""
    def __init__(self, budget: int, smallest: int):
        self.budget = budget
        self.smallest = smallest
        super().__init__(
            f"Could not compress image under {budget} bytes "
            f"(smallest attempt was {smallest} bytes)"
        )


class InvalidInput(VaultError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class InvalidCredentials(VaultError):
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, status_code=401)


class NotAuthenticated(VaultError):
    def __init__(self, message: str = "Login required"):
        super().__init__(message, status_code=401)


class NotFound(VaultError):
    def __init__(self, message: str = "File not found"):
        super().__init__(message, status_code=404)
