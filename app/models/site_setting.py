"""Public site settings"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON

from app.database import Base


RESERVATION_SLOTS_KEY = "reservation_slots"


class SiteSetting(Base):
    """Publicly readable, admin-writable configuration values"""
    __tablename__ = "site_settings"

    key = Column(String(100), primary_key=True)
    value_json = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
