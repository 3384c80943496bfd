"""Filtering and counters for the reservation dashboard.

Pure functions over an in-memory list of reservation records; the list is
never re-queried to answer a filter change.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from app.models.reservation import ReservationStatus
from app.schemas.reservation import ReservationResponse, ReservationStats

ALL_STATUSES = "all"


@dataclass(frozen=True)
class ReservationFilters:
    """Status ("all" or one status), exact date, and free-text search"""
    status: str = ALL_STATUSES
    date: Optional[date] = None
    search: str = ""

    @property
    def is_empty(self) -> bool:
        return self.status == ALL_STATUSES and self.date is None and not self.search.strip()


def matches_filters(record: ReservationResponse, filters: ReservationFilters) -> bool:
    if filters.status != ALL_STATUSES and ReservationStatus(record.status).value != filters.status:
        return False

    if filters.date is not None and record.reservation_date != filters.date:
        return False

    query = filters.search.strip().lower()
    if query:
        search_text = f"{record.customer_name} {record.customer_phone}".lower()
        if query not in search_text:
            return False

    return True


def apply_filters(
    records: Iterable[ReservationResponse],
    filters: ReservationFilters,
) -> List[ReservationResponse]:
    """Derived view in source order"""
    return [record for record in records if matches_filters(record, filters)]


def compute_stats(records: Iterable[ReservationResponse], today: date) -> ReservationStats:
    records = list(records)
    return ReservationStats(
        today=sum(1 for r in records if r.reservation_date == today),
        pending=sum(1 for r in records if r.status == ReservationStatus.PENDING),
        confirmed=sum(1 for r in records if r.status == ReservationStatus.CONFIRMED),
        total=len(records),
    )
