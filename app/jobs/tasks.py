"""Background job tasks"""

import asyncio
import structlog

from app.jobs.celery_app import celery_app
from app.config import settings
from app.notifications.sender import NotificationDispatchError, get_email_sender

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)


@celery_app.task(
    name="send_reservation_emails",
    bind=True,
    autoretry_for=(NotificationDispatchError,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=5,
)
def send_reservation_emails(self, reservation_id: str):
    """Staff alerts and customer acknowledgement for a new reservation"""
    logger.info(
        "Sending reservation notifications",
        reservation_id=reservation_id,
        attempt=self.request.retries + 1,
    )

    from app.database import create_worker_session_factory
    from app.notifications.trigger import dispatch_reservation_emails
    from app.realtime import publish_from_worker

    async def _send():
        engine, session_factory = create_worker_session_factory()
        try:
            return await dispatch_reservation_emails(
                reservation_id,
                session_factory,
                get_email_sender(),
                settings.staff_emails_list,
                publish=publish_from_worker,
            )
        finally:
            await engine.dispose()

    return run_async(_send())


@celery_app.task(
    name="send_password_reset_email",
    autoretry_for=(NotificationDispatchError,),
    retry_backoff=True,
    max_retries=3,
)
def send_password_reset_email(email: str, token: str):
    """Email a single-use reset link"""
    from app.notifications.trigger import dispatch_password_reset

    dispatch_password_reset(email, token, get_email_sender(), settings.public_base_url)
