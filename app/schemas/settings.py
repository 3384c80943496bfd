"""Site settings schemas"""

import re
from typing import List
from pydantic import BaseModel, field_validator

SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SiteSettingsResponse(BaseModel):
    """Public restaurant settings"""
    restaurant_name: str
    restaurant_phone: str
    restaurant_address: str
    reservation_slots: List[str]
    reservation_max_advance_months: int


class ReservationSlotsUpdate(BaseModel):
    """Replace the offered time slots"""
    reservation_slots: List[str]

    @field_validator("reservation_slots")
    @classmethod
    def validate_slots(cls, value: List[str]) -> List[str]:
        slots = []
        for slot in value:
            slot = slot.strip()
            if not SLOT_PATTERN.match(slot):
                raise ValueError(f"Invalid time slot: {slot}")
            if slot not in slots:
                slots.append(slot)
        if not slots:
            raise ValueError("At least one time slot is required")
        return sorted(slots)
