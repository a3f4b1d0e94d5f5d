"""Auth request/response and token payload schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr

from models.user import UserResponse


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # user_id (standard JWT claim)
    role: str
    exp: datetime  # Expiration time (standard JWT claim)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Token plus the authenticated user."""

    token: str
    user: UserResponse
