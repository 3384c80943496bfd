"""Profile schemas"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel

from app.models.profile import ProfileRole


class Preferences(BaseModel):
    email_notifications: bool = True
    sms_notifications: bool = False


class ProfileResponse(BaseModel):
    """Profile document"""
    uid: UUID
    email: str
    display_name: Optional[str]
    role: ProfileRole
    reservations: List[str] = []
    preferences: Preferences
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    last_login: Optional[datetime]

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile"""
    display_name: Optional[str] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None


class ProfileResult(BaseModel):
    """Uniform profile read/update result"""
    success: bool
    data: Optional[ProfileResponse] = None
    error: Optional[str] = None
