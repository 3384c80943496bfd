"""Reservation model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, Text, Enum, Uuid
import enum

from app.database import Base


class ReservationStatus(str, enum.Enum):
    """Reservation lifecycle: pending -> confirmed | cancelled"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class ReservationAction(str, enum.Enum):
    """Operator actions on a single reservation"""
    CONFIRM = "confirm"
    CANCEL = "cancel"
    DELETE = "delete"


TRANSITIONS = {
    ReservationAction.CONFIRM: ReservationStatus.CONFIRMED,
    ReservationAction.CANCEL: ReservationStatus.CANCELLED,
}


def allowed_actions(status: ReservationStatus) -> list:
    """Actions an operator may take for a reservation in the given status"""
    status = ReservationStatus(status)
    actions = []
    if status == ReservationStatus.PENDING:
        actions.append(ReservationAction.CONFIRM)
    if status != ReservationStatus.CANCELLED:
        actions.append(ReservationAction.CANCEL)
    actions.append(ReservationAction.DELETE)
    return actions


def can_transition(status: ReservationStatus, action: ReservationAction) -> bool:
    """True when ``action`` is a legal status transition from ``status``"""
    return action in TRANSITIONS and action in allowed_actions(status)


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"))

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_email = Column(String(255))

    # Reservation details
    party_size = Column(Integer, nullable=False)
    reservation_date = Column(Date, nullable=False)
    reservation_time = Column(String(5), nullable=False)
    special_requests = Column(Text)

    # Status
    status = Column(Enum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False)

    # Notification bookkeeping
    notifications_sent_at = Column(DateTime)
    email_error = Column(Text)
    email_error_timestamp = Column(DateTime)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
