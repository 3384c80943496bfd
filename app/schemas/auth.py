"""Authentication schemas"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel


class SignUpRequest(BaseModel):
    """Create account request"""
    email: str
    password: str
    name: str


class SignInRequest(BaseModel):
    """Sign in request"""
    email: str
    password: str


class RefreshRequest(BaseModel):
    """Token refresh request"""
    refresh_token: str


class PasswordResetRequest(BaseModel):
    """Password reset email request"""
    email: str


class PasswordResetConfirm(BaseModel):
    """Set a new password with a reset token"""
    token: str
    new_password: str


class UserInfo(BaseModel):
    """Auth record fields returned to the caller"""
    uid: UUID
    email: str
    display_name: Optional[str] = None


class AuthResult(BaseModel):
    """Uniform result of every identity operation"""
    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None
    user: Optional[UserInfo] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
