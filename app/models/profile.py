"""Per-account profile model"""

from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON, Enum, Uuid
from sqlalchemy.orm import relationship
import enum

from app.database import Base


class ProfileRole(str, enum.Enum):
    """Capabilities granted to an account"""
    CUSTOMER = "customer"
    ADMIN = "admin"


class Profile(Base):
    """Durable profile keyed by the account id"""
    __tablename__ = "profiles"

    uid = Column(Uuid, ForeignKey("users.id"), primary_key=True)

    # Mirrors the auth record at creation time
    email = Column(String(255), nullable=False)
    display_name = Column(String(255))

    # Role is only changed out of band (scripts/grant_admin.py)
    role = Column(Enum(ProfileRole), default=ProfileRole.CUSTOMER, nullable=False)

    # Reservation ids booked while signed in, oldest first
    reservations = Column(JSON, default=list)

    # Preferences
    email_notifications = Column(Boolean, default=True)
    sms_notifications = Column(Boolean, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime)

    # Relationships
    user = relationship("User", back_populates="profile")

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN

    @property
    def preferences(self) -> dict:
        return {
            "email_notifications": self.email_notifications,
            "sms_notifications": self.sms_notifications,
        }
