"""Staff dashboard controller.

All dashboard state lives on one ``AdminState`` owned by the console.
The reservation list only ever changes from a server snapshot; actions
never patch it locally.
"""

import inspect
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, List, Optional, Union
from uuid import UUID

import httpx
import structlog

from app.client.session import AuthState, IdentityGateway
from app.client.subscription import ReservationSubscription
from app.dashboard import ALL_STATUSES, ReservationFilters, apply_filters, compute_stats
from app.models.reservation import (
    ReservationAction,
    ReservationStatus,
    TRANSITIONS,
    allowed_actions,
)
from app.schemas.reservation import ReservationResponse, ReservationStats
from app.validation import local_today

logger = structlog.get_logger()

LOGIN_ERROR = "Invalid email or password"
DELETE_PROMPT = "Are you sure you want to delete this reservation? This cannot be undone."

ConfirmPrompt = Callable[[str], Union[bool, Awaitable[bool]]]


def empty_stats() -> ReservationStats:
    return ReservationStats(today=0, pending=0, confirmed=0, total=0)


@dataclass
class AdminState:
    user: Optional[dict] = None
    reservations: List[ReservationResponse] = field(default_factory=list)
    filters: ReservationFilters = field(default_factory=ReservationFilters)
    view: List[ReservationResponse] = field(default_factory=list)
    stats: ReservationStats = field(default_factory=empty_stats)
    loading: bool = False
    error: Optional[str] = None
    notice: Optional[str] = None

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    return detail if isinstance(detail, str) else f"HTTP {response.status_code}"


class AdminConsole:
    def __init__(
        self,
        gateway: IdentityGateway,
        confirm_prompt: ConfirmPrompt,
        today: Callable[[], date] = local_today,
        subscription_factory: Optional[Callable[..., ReservationSubscription]] = None,
    ):
        self.gateway = gateway
        self.confirm_prompt = confirm_prompt
        self.today = today
        self.state = AdminState()
        self._subscription_factory = subscription_factory or ReservationSubscription
        self._subscription: Optional[ReservationSubscription] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def start(self) -> None:
        """Follow the gateway's auth state; the live listing runs while signed in"""
        self._unsubscribe = await self.gateway.on_auth_state_changed(self._on_auth_state)

    async def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        await self._stop_listing()

    async def _on_auth_state(self, auth: AuthState) -> None:
        if auth.is_authenticated:
            self.state.user = auth.user
            if self._subscription is None:
                self.state.loading = True
                self._subscription = self._subscription_factory(
                    self.gateway,
                    on_snapshot=self.apply_snapshot,
                    on_error=self._on_listing_error,
                )
                self._subscription.start()
        else:
            await self._stop_listing()
            self.state = AdminState()

    async def _stop_listing(self) -> None:
        if self._subscription is not None:
            await self._subscription.stop()
            self._subscription = None

    def _on_listing_error(self, message: str) -> None:
        self.state.loading = False
        self.state.error = message

    async def login(self, email: str, password: str) -> bool:
        result = await self.gateway.sign_in(email, password)
        if not result.success:
            logger.info("Admin login failed", code=result.code)
            self.state.error = LOGIN_ERROR
            return False
        self.state.error = None
        return True

    async def logout(self) -> None:
        await self.gateway.sign_out()

    def apply_snapshot(self, records: List[ReservationResponse]) -> None:
        """Replace the whole list, then rebuild counters and the filtered view"""
        self.state.reservations = list(records)
        self.state.loading = False
        self._recompute()

    def _recompute(self) -> None:
        self.state.stats = compute_stats(self.state.reservations, self.today())
        self.state.view = apply_filters(self.state.reservations, self.state.filters)

    def set_filters(
        self,
        status: str = ALL_STATUSES,
        date: Optional[date] = None,
        search: str = "",
    ) -> List[ReservationResponse]:
        self.state.filters = ReservationFilters(status=status, date=date, search=search)
        self._recompute()
        return self.state.view

    def clear_filters(self) -> List[ReservationResponse]:
        return self.set_filters()

    def find(self, reservation_id) -> Optional[ReservationResponse]:
        reservation_id = UUID(str(reservation_id))
        for record in self.state.reservations:
            if record.id == reservation_id:
                return record
        return None

    def available_actions(self, record: ReservationResponse) -> List[ReservationAction]:
        return allowed_actions(record.status)

    async def confirm(self, reservation_id) -> bool:
        return await self._change_status(reservation_id, ReservationAction.CONFIRM)

    async def cancel(self, reservation_id) -> bool:
        return await self._change_status(reservation_id, ReservationAction.CANCEL)

    async def _change_status(self, reservation_id, action: ReservationAction) -> bool:
        record = self.find(reservation_id)
        if record is None:
            self.state.error = "Reservation not found"
            return False
        if action not in self.available_actions(record):
            self.state.error = (
                f"Cannot {action.value} a {ReservationStatus(record.status).value} reservation"
            )
            return False

        ok = await self._write(
            "POST",
            f"/reservations/{record.id}/{action.value}",
            "Error updating reservation",
        )
        if ok:
            self.state.notice = f"Reservation {TRANSITIONS[action].value} successfully!"
            logger.info("Reservation status changed", reservation_id=str(record.id), action=action.value)
        return ok

    async def delete(self, reservation_id) -> bool:
        answer = self.confirm_prompt(DELETE_PROMPT)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False

        ok = await self._write("DELETE", f"/reservations/{reservation_id}", "Error deleting reservation")
        if ok:
            self.state.notice = "Reservation deleted successfully!"
            logger.info("Reservation deleted", reservation_id=str(reservation_id))
        return ok

    async def _write(self, method: str, url: str, error_prefix: str) -> bool:
        self.state.error = None
        self.state.notice = None
        try:
            response = await self.gateway.request(method, url)
        except httpx.HTTPError as e:
            self.state.error = f"{error_prefix}: {e}"
            return False
        if response.is_error:
            self.state.error = f"{error_prefix}: {_error_detail(response)}"
            return False
        return True
