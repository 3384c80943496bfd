"""Reservation form rules shared by the API and the client SDK"""

import calendar
import re
from datetime import date, datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from app.config import settings

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
NON_DIGITS = re.compile(r"\D")

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields."
PHONE_MESSAGE = "Please enter a valid 10-digit Indian phone number"
PAST_DATE_MESSAGE = "Please select a future date"
INVALID_DATE_MESSAGE = "Please select a valid date"
PARTY_SIZE_MESSAGE = "Please select a valid party size."
TIME_SLOT_MESSAGE = "Please select an available time slot."
GENERIC_SUBMIT_ERROR = "An error occurred. Please try again or call us directly."


class ReservationValidationError(ValueError):
    """Raised before any write when reservation input is rejected"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


def local_today(tz_name: Optional[str] = None) -> date:
    """Today's date at the restaurant"""
    return datetime.now(ZoneInfo(tz_name or settings.restaurant_timezone)).date()


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping to the last day of the target month"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def normalize_phone_input(raw: Optional[str]) -> str:
    """What the phone field keeps as the user types: digits only, at most 10"""
    return NON_DIGITS.sub("", raw or "")[:10]


def validate_phone(value: Optional[str]) -> str:
    digits = NON_DIGITS.sub("", value or "")
    if not PHONE_PATTERN.match(digits):
        raise ReservationValidationError(PHONE_MESSAGE, field="customer_phone")
    return digits


def validate_party_size(value) -> int:
    if isinstance(value, bool):
        raise ReservationValidationError(PARTY_SIZE_MESSAGE, field="party_size")
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        raise ReservationValidationError(PARTY_SIZE_MESSAGE, field="party_size")
    if size < 1:
        raise ReservationValidationError(PARTY_SIZE_MESSAGE, field="party_size")
    return size


def max_advance_message(months: int) -> str:
    unit = "month" if months == 1 else "months"
    return f"Reservations can only be made up to {months} {unit} in advance"


def validate_reservation_date(
    value,
    today: Optional[date] = None,
    max_advance_months: Optional[int] = None,
) -> date:
    """Parse the date and check it against the booking window.

    ``max_advance_months`` of 0 disables the upper bound.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        requested = value
    else:
        try:
            requested = date.fromisoformat(str(value).strip())
        except ValueError:
            raise ReservationValidationError(INVALID_DATE_MESSAGE, field="reservation_date")

    today = today or local_today()
    if requested < today:
        raise ReservationValidationError(PAST_DATE_MESSAGE, field="reservation_date")

    if max_advance_months is None:
        max_advance_months = settings.reservation_max_advance_months
    if max_advance_months and requested > add_months(today, max_advance_months):
        raise ReservationValidationError(
            max_advance_message(max_advance_months), field="reservation_date"
        )
    return requested


def validate_time_slot(value: Optional[str], slots: Optional[Iterable[str]] = None) -> str:
    value = (value or "").strip()
    if slots is not None and value not in list(slots):
        raise ReservationValidationError(TIME_SLOT_MESSAGE, field="reservation_time")
    return value


def require_fields(values: dict, fields: Iterable[str]) -> None:
    for field in fields:
        value = values.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ReservationValidationError(REQUIRED_FIELDS_MESSAGE, field=field)


def format_long_date(value) -> str:
    """Saturday, November 15, 2025"""
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_guests(party_size) -> str:
    return f"{party_size} {'guest' if str(party_size) == '1' else 'guests'}"


REQUIRED_RESERVATION_FIELDS = (
    "customer_name",
    "customer_phone",
    "party_size",
    "reservation_date",
    "reservation_time",
)


def clean_reservation(
    values: dict,
    slots: Optional[Iterable[str]] = None,
    today: Optional[date] = None,
    max_advance_months: Optional[int] = None,
) -> dict:
    """Validate raw form values and return the fields to persist.

    Raises ReservationValidationError on the first rule that fails.
    """
    require_fields(values, REQUIRED_RESERVATION_FIELDS)
    email = (values.get("customer_email") or "").strip() or None
    requests = (values.get("special_requests") or "").strip() or None
    return {
        "customer_name": values["customer_name"].strip(),
        "customer_phone": validate_phone(values["customer_phone"]),
        "customer_email": email,
        "party_size": validate_party_size(values["party_size"]),
        "reservation_date": validate_reservation_date(
            values["reservation_date"], today=today, max_advance_months=max_advance_months
        ),
        "reservation_time": validate_time_slot(values["reservation_time"], slots),
        "special_requests": requests,
    }
