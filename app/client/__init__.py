"""Async client SDK for the reservations API"""

from app.client.session import AuthState, AuthStateStream, IdentityGateway
from app.client.intake import ReservationIntake, ReservationForm, IntakeOutcome
from app.client.admin import AdminConsole, AdminState
from app.client.subscription import ReservationSubscription

__all__ = [
    "AuthState",
    "AuthStateStream",
    "IdentityGateway",
    "ReservationIntake",
    "ReservationForm",
    "IntakeOutcome",
    "AdminConsole",
    "AdminState",
    "ReservationSubscription",
]
