"""Database models"""

from app.models.user import User
from app.models.profile import Profile, ProfileRole
from app.models.reservation import Reservation, ReservationStatus, ReservationAction
from app.models.site_setting import SiteSetting

__all__ = [
    "User",
    "Profile",
    "ProfileRole",
    "Reservation",
    "ReservationStatus",
    "ReservationAction",
    "SiteSetting",
]
