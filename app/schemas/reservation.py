"""Reservation schemas"""

from datetime import date, datetime
from typing import Optional, List, Union
from uuid import UUID
from pydantic import BaseModel

from app.models.reservation import ReservationStatus


class ReservationCreate(BaseModel):
    """Reservation form values; rules are applied by app.validation"""
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    party_size: Optional[Union[int, str]] = None
    reservation_date: Optional[str] = None
    reservation_time: Optional[str] = None
    special_requests: Optional[str] = None


class ReservationResponse(BaseModel):
    """Reservation record"""
    id: UUID
    user_id: Optional[UUID] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    party_size: int
    reservation_date: date
    reservation_time: str
    special_requests: Optional[str] = None
    status: ReservationStatus
    notifications_sent_at: Optional[datetime] = None
    email_error: Optional[str] = None
    email_error_timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    """Reservation list, newest first"""
    items: List[ReservationResponse]
    total: int


class ReservationStats(BaseModel):
    """Dashboard counters"""
    today: int
    pending: int
    confirmed: int
    total: int


class ReservationSnapshot(BaseModel):
    """Full collection pushed to live subscribers"""
    reservations: List[ReservationResponse]
