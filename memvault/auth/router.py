"""Auth router for email/password accounts.

Endpoints:
    POST /auth/register - Create an account
    POST /auth/login    - Start a session and receive a bearer token
    POST /auth/logout   - End the current session
    GET  /auth/me       - Identity of the current session
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from memvault.dependencies import get_auth_service, get_session
from memvault.errors import VaultError

from .schemas import Credentials, IdentityResponse, LoginResponse, RegisterResponse
from .service import AuthService
from .sessions import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: Credentials,
    svc: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create an account. Answers 409 if the email is taken."""
    try:
        user = await svc.register(body.email, body.password)
    except VaultError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return RegisterResponse(email=user.email, created_at=user.created_at)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: Credentials,
    svc: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Check credentials and return a bearer token. Answers 401 on mismatch."""
    try:
        session = await svc.login(body.email, body.password)
    except VaultError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return LoginResponse(token=session.token, email=session.identity)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    session: SessionContext = Depends(get_session),
    svc: AuthService = Depends(get_auth_service),
) -> Response:
    svc.logout(session.token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=IdentityResponse)
async def me(session: SessionContext = Depends(get_session)) -> IdentityResponse:
    if not session.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return IdentityResponse(email=session.identity)
