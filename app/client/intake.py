"""Client-side reservation form controller"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Callable, List, Optional

import httpx
import structlog

from app.config import settings
from app.client.session import IdentityGateway
from app.schemas.reservation import ReservationResponse
from app.validation import (
    GENERIC_SUBMIT_ERROR,
    ReservationValidationError,
    clean_reservation,
    format_guests,
    format_long_date,
    local_today,
    normalize_phone_input,
)

logger = structlog.get_logger()

SUBMIT_LABEL = "Reserve Table"
SUBMITTING_LABEL = "Submitting..."
SUCCESS_MESSAGE = "Reservation request submitted successfully! We will contact you shortly to confirm."
EMAILS_SENT_MESSAGE = "Confirmation emails have been sent to you and our team."


@dataclass
class SubmitControl:
    enabled: bool = True
    label: str = SUBMIT_LABEL

    def disable(self) -> None:
        self.enabled = False
        self.label = SUBMITTING_LABEL

    def enable(self) -> None:
        self.enabled = True
        self.label = SUBMIT_LABEL

    def hold(self) -> None:
        """Stay disabled after a success until the result is dismissed"""
        self.enabled = False
        self.label = SUBMIT_LABEL


@dataclass
class ReservationForm:
    """Raw field values as entered"""
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    party_size: str = ""
    reservation_date: str = ""
    reservation_time: str = ""
    special_requests: str = ""


@dataclass
class ConfirmationView:
    customer_name: str
    date_text: str
    reservation_time: str
    guests_text: str
    message: str = SUCCESS_MESSAGE
    emails_note: str = EMAILS_SENT_MESSAGE


@dataclass
class IntakeOutcome:
    success: bool
    reservation: Optional[ReservationResponse] = None
    confirmation: Optional[ConfirmationView] = None
    error: Optional[str] = None


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        return None
    return detail if isinstance(detail, str) else None


@dataclass
class ReservationIntake:
    """Validates and submits one reservation at a time.

    The submit control is disabled while a request is in flight and after
    a success; it comes back only through ``dismiss_result`` or ``reset``.
    On failure it is re-enabled at once and the form keeps its values.
    """
    http_client: httpx.AsyncClient
    gateway: Optional[IdentityGateway] = None
    today: Callable[[], date] = local_today
    form: ReservationForm = field(default_factory=ReservationForm)
    control: SubmitControl = field(default_factory=SubmitControl)
    slots: List[str] = field(default_factory=lambda: settings.reservation_slots_list)
    max_advance_months: int = settings.reservation_max_advance_months
    outcome: Optional[IntakeOutcome] = None

    async def load_slots(self) -> List[str]:
        """Offered slots and booking window from the public settings"""
        try:
            response = await self.http_client.get("/settings")
            response.raise_for_status()
        except httpx.HTTPError:
            logger.warning("Could not load reservation slots, keeping defaults", exc_info=True)
            return self.slots
        data = response.json()
        self.slots = data["reservation_slots"]
        self.max_advance_months = data["reservation_max_advance_months"]
        return self.slots

    def on_phone_input(self, raw: str) -> str:
        self.form.customer_phone = normalize_phone_input(raw)
        return self.form.customer_phone

    def _fail(self, message: Optional[str]) -> IntakeOutcome:
        self.outcome = IntakeOutcome(success=False, error=message or GENERIC_SUBMIT_ERROR)
        self.control.enable()
        return self.outcome

    async def submit(self, form: Optional[ReservationForm] = None) -> Optional[IntakeOutcome]:
        """Validate locally, then make exactly one create request.

        Returns None when the control is disabled and nothing was sent.
        """
        if not self.control.enabled:
            logger.debug("Submit ignored while control is disabled")
            return None

        if form is not None:
            self.form = form
        self.control.disable()
        self.outcome = None

        try:
            fields = clean_reservation(
                asdict(self.form),
                slots=self.slots,
                today=self.today(),
                max_advance_months=self.max_advance_months,
            )
        except ReservationValidationError as e:
            return self._fail(e.message)

        payload = dict(fields, reservation_date=fields["reservation_date"].isoformat())
        headers = self.gateway.auth_headers if self.gateway else {}
        try:
            response = await self.http_client.post("/reservations", json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Error submitting reservation", error=str(e))
            return self._fail(str(e))

        if response.status_code != 201:
            logger.error("Reservation rejected", status_code=response.status_code)
            return self._fail(_error_detail(response))

        reservation = ReservationResponse.model_validate(response.json())
        logger.info("Reservation created", reservation_id=str(reservation.id))
        self.control.hold()
        self.outcome = IntakeOutcome(
            success=True,
            reservation=reservation,
            confirmation=ConfirmationView(
                customer_name=reservation.customer_name,
                date_text=format_long_date(reservation.reservation_date),
                reservation_time=reservation.reservation_time,
                guests_text=format_guests(reservation.party_size),
            ),
        )
        return self.outcome

    def dismiss_result(self) -> None:
        """Close the result view and allow another submission"""
        self.outcome = None
        self.control.enable()

    def reset(self) -> None:
        """Start over with an empty form"""
        self.form = ReservationForm()
        self.dismiss_result()
