"""Pydantic schemas for the auth endpoints."""
from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """Request body for register and login."""
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=1024)


class RegisterResponse(BaseModel):
    email: str
    created_at: float


class LoginResponse(BaseModel):
    token: str = Field(..., description="Bearer token for later requests")
    email: str


class IdentityResponse(BaseModel):
    email: str
