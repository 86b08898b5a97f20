"""Email/password accounts backed by the ``users`` collection.

Passwords are stored and compared as given. This mirrors how the vault has
always worked and is not a safe way to keep credentials; hashing them is a
separate change.
"""
import hmac
import logging
from typing import Optional, Tuple

from memvault.errors import DuplicateKey, InvalidCredentials, InvalidInput
from memvault.storage import StorageEngine, UserRecord

from .sessions import SessionContext, SessionStore

logger = logging.getLogger(__name__)


def _clean(email: Optional[str], password: Optional[str]) -> Tuple[str, str]:
    email = (email or "").strip()
    password = (password or "").strip()
    if not email or not password:
        raise InvalidInput("Provide email and password")
    return email, password


class AuthService:
    """Registers users, logs them in and out, and resolves session tokens.

    Args:
        engine: Storage engine holding the ``users`` collection.
        sessions: Store mapping session tokens to identities.
    """

    def __init__(self, engine: StorageEngine, sessions: SessionStore) -> None:
        self._engine = engine
        self._sessions = sessions

    async def register(self, email: str, password: str) -> UserRecord:
        """Create an account.

        Raises:
            InvalidInput: If email or password is blank.
            DuplicateKey: If the email is already registered.
        """
        email, password = _clean(email, password)
        if await self._engine.get_user(email) is not None:
            raise DuplicateKey("users", email)

        user = UserRecord(email=email, password=password)
        await self._engine.add_user(user)
        logger.info("Registered user %s", email)
        return user

    async def login(self, email: str, password: str) -> SessionContext:
        """Check credentials and start a session.

        Returns:
            SessionContext carrying the new token and the identity.

        Raises:
            InvalidInput: If email or password is blank.
            InvalidCredentials: If the email is unknown or the password differs.
        """
        email, password = _clean(email, password)
        user = await self._engine.get_user(email)
        if user is None or not hmac.compare_digest(
            user.password.encode("utf-8"), password.encode("utf-8")
        ):
            logger.info("Failed login for %s", email)
            raise InvalidCredentials()

        session = self._sessions.create(user.email)
        logger.info("User %s logged in", user.email)
        return session

    def logout(self, token: Optional[str]) -> None:
        self._sessions.revoke(token)

    def resolve(self, token: Optional[str]) -> SessionContext:
        return self._sessions.resolve(token)
