"""Tests for auth module (accounts and sessions)."""
from unittest.mock import patch

import pytest

from memvault.auth.service import AuthService
from memvault.auth.sessions import ANONYMOUS, SessionContext, SessionStore
from memvault.errors import DuplicateKey, InvalidCredentials, InvalidInput


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def auth(engine, sessions):
    return AuthService(engine, sessions)


class TestSessionStore:
    """Tests for the in-memory session store."""

    def test_create_and_resolve(self, sessions):
        session = sessions.create("a@x.com")

        assert session.identity == "a@x.com"
        assert session.token
        assert sessions.resolve(session.token) == session

    def test_tokens_are_unique(self, sessions):
        assert sessions.create("a@x.com").token != sessions.create("a@x.com").token

    def test_unknown_or_missing_token_is_anonymous(self, sessions):
        assert sessions.resolve("nope") is ANONYMOUS
        assert sessions.resolve(None) is ANONYMOUS
        assert not ANONYMOUS.is_authenticated
        assert ANONYMOUS.current_identity() is None

    def test_revoke(self, sessions):
        session = sessions.create("a@x.com")
        sessions.revoke(session.token)

        assert sessions.resolve(session.token) is ANONYMOUS
        sessions.revoke(session.token)  # no-op
        assert len(sessions) == 0

    def test_expired_session_is_evicted(self):
        store = SessionStore(ttl_seconds=60)
        with patch("memvault.auth.sessions.time.monotonic", return_value=1000.0):
            session = store.create("a@x.com")
        with patch("memvault.auth.sessions.time.monotonic", return_value=1059.0):
            assert store.resolve(session.token).identity == "a@x.com"
        with patch("memvault.auth.sessions.time.monotonic", return_value=1060.0):
            assert store.resolve(session.token) is ANONYMOUS
        assert len(store) == 0

    def test_abandoned_sessions_are_purged_on_create(self):
        store = SessionStore(ttl_seconds=60)
        with patch("memvault.auth.sessions.time.monotonic", return_value=1000.0):
            for _ in range(5):
                store.create("a@x.com")
        assert len(store) == 5

        with patch("memvault.auth.sessions.time.monotonic", return_value=1070.0):
            fresh = store.create("b@x.com")

        assert len(store) == 1
        with patch("memvault.auth.sessions.time.monotonic", return_value=1070.0):
            assert store.resolve(fresh.token).identity == "b@x.com"

    def test_purge_keeps_live_sessions(self):
        store = SessionStore(ttl_seconds=60)
        with patch("memvault.auth.sessions.time.monotonic", return_value=1000.0):
            old = store.create("a@x.com")
        with patch("memvault.auth.sessions.time.monotonic", return_value=1030.0):
            young = store.create("b@x.com")
        with patch("memvault.auth.sessions.time.monotonic", return_value=1065.0):
            assert store.purge_expired() == 1
            assert store.resolve(old.token) is ANONYMOUS
            assert store.resolve(young.token).identity == "b@x.com"


class TestAuthService:
    """Tests for registration and login."""

    @pytest.mark.asyncio
    async def test_register_stores_user(self, auth, engine):
        user = await auth.register("a@x.com", "secret")

        stored = await engine.get_user("a@x.com")
        assert stored == user
        assert stored.password == "secret"

    @pytest.mark.asyncio
    async def test_register_trims_input(self, auth, engine):
        await auth.register("  a@x.com ", " secret ")

        stored = await engine.get_user("a@x.com")
        assert stored.password == "secret"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [
        ("", "secret"),
        ("a@x.com", ""),
        ("   ", "   "),
        (None, "secret"),
    ])
    async def test_register_requires_both_fields(self, auth, email, password):
        with pytest.raises(InvalidInput):
            await auth.register(email, password)

    @pytest.mark.asyncio
    async def test_register_twice_fails_with_duplicate_key(self, auth):
        await auth.register("a@x.com", "secret")

        with pytest.raises(DuplicateKey):
            await auth.register("a@x.com", "different")

    @pytest.mark.asyncio
    async def test_login_with_wrong_password_fails(self, auth):
        await auth.register("a@x.com", "secret")

        with pytest.raises(InvalidCredentials) as exc_info:
            await auth.login("a@x.com", "wrong")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_login_unknown_user_fails(self, auth):
        with pytest.raises(InvalidCredentials):
            await auth.login("ghost@x.com", "secret")

    @pytest.mark.asyncio
    async def test_login_yields_identity(self, auth, sessions):
        await auth.register("a@x.com", "secret")

        session = await auth.login("a@x.com", "secret")

        assert isinstance(session, SessionContext)
        assert session.current_identity() == "a@x.com"
        assert auth.resolve(session.token).identity == "a@x.com"

    @pytest.mark.asyncio
    async def test_logout_ends_session(self, auth):
        await auth.register("a@x.com", "secret")
        session = await auth.login("a@x.com", "secret")

        auth.logout(session.token)

        assert auth.resolve(session.token) is ANONYMOUS

    @pytest.mark.asyncio
    async def test_register_then_duplicate_then_login_scenario(self, auth):
        await auth.register("a@x.com", "secret")
        with pytest.raises(DuplicateKey):
            await auth.register("a@x.com", "secret")
        with pytest.raises(InvalidCredentials):
            await auth.login("a@x.com", "nope")

        session = await auth.login("a@x.com", "secret")
        assert session.identity == "a@x.com"
