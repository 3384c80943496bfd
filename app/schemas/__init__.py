"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    SignUpRequest,
    SignInRequest,
    RefreshRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
    UserInfo,
    AuthResult,
)
from app.schemas.profile import (
    Preferences,
    ProfileResponse,
    ProfileUpdate,
    ProfileResult,
)
from app.schemas.reservation import (
    ReservationCreate,
    ReservationResponse,
    ReservationListResponse,
    ReservationStats,
    ReservationSnapshot,
)
from app.schemas.settings import (
    SiteSettingsResponse,
    ReservationSlotsUpdate,
)

__all__ = [
    "SignUpRequest",
    "SignInRequest",
    "RefreshRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    "UserInfo",
    "AuthResult",
    "Preferences",
    "ProfileResponse",
    "ProfileUpdate",
    "ProfileResult",
    "ReservationCreate",
    "ReservationResponse",
    "ReservationListResponse",
    "ReservationStats",
    "ReservationSnapshot",
    "SiteSettingsResponse",
    "ReservationSlotsUpdate",
]
