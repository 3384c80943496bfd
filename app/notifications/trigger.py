"""Reservation-created notification trigger.

Runs once per new reservation: one alert per staff address plus a
customer acknowledgement when the booking carries an email. Sends run
concurrently and every one settles before the outcome is recorded. A
failure is written back onto the reservation (email_error and
email_error_timestamp) and re-raised so the worker can retry. A retry
sends the whole set again, so staff may see a duplicate alert after a
partial failure.
"""

from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from app.models.reservation import Reservation
from app.notifications.sender import EmailSender, NotificationDispatchError
from app.notifications.templates import build_reservation_messages, password_reset
from app.realtime import change_event

logger = structlog.get_logger()


async def dispatch_reservation_emails(
    reservation_id: str,
    session_factory: async_sessionmaker,
    sender: EmailSender,
    staff_recipients: List[str],
    publish: Optional[Callable[[dict], None]] = None,
) -> bool:
    """Returns True when messages were sent by this call"""
    async with session_factory() as db:
        result = await db.execute(
            select(Reservation).where(Reservation.id == UUID(reservation_id))
        )
        reservation = result.scalar_one_or_none()

        if reservation is None:
            logger.warning("Reservation not found for notification", reservation_id=reservation_id)
            return False

        if reservation.notifications_sent_at is not None:
            logger.info("Notifications already sent", reservation_id=reservation_id)
            return False

        messages = build_reservation_messages(reservation, staff_recipients)

        try:
            await sender.send_all(messages)
        except NotificationDispatchError as e:
            reservation.email_error = str(e)
            reservation.email_error_timestamp = datetime.utcnow()
            await db.commit()
            logger.error(
                "Reservation notifications failed",
                reservation_id=reservation_id,
                failed=e.failed_recipients,
            )
            if publish:
                publish(change_event("updated", reservation_id))
            raise

        reservation.notifications_sent_at = datetime.utcnow()
        await db.commit()

    logger.info(
        "Reservation notifications sent",
        reservation_id=reservation_id,
        count=len(messages),
    )
    if publish:
        publish(change_event("updated", reservation_id))
    return True


def dispatch_password_reset(
    email: str,
    token: str,
    sender: EmailSender,
    base_url: str,
) -> None:
    link = f"{base_url.rstrip('/')}/reset-password?token={token}"
    sender.send(password_reset(email, link))
    logger.info("Password reset email sent", email=email)
