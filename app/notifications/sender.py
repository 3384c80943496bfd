"""SendGrid email delivery"""

import asyncio
from typing import List, Optional

from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
import structlog

from app.config import settings
from app.notifications.templates import EmailMessage

logger = structlog.get_logger()


class NotificationDispatchError(RuntimeError):
    """One or more messages could not be handed to the email provider"""

    def __init__(self, message: str, failed_recipients: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_recipients = failed_recipients or []


class EmailSender:
    """Sends rendered messages from the fixed sender address"""

    def __init__(self, api_key: str, from_email: str):
        self.api_key = api_key
        self.from_email = from_email
        self.client = SendGridAPIClient(api_key) if api_key else None

    def send(self, message: EmailMessage) -> int:
        if self.client is None:
            raise NotificationDispatchError("SendGrid API key is not configured", [message.to])

        mail = Mail(
            from_email=self.from_email,
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.text,
            html_content=message.html,
        )
        try:
            response = self.client.send(mail)
        except HTTPError as e:
            raise NotificationDispatchError(
                f"SendGrid rejected message to {message.to}: {e.status_code} {e.reason}",
                [message.to],
            )

        logger.info("Email sent", to=message.to, status_code=response.status_code)
        return response.status_code

    async def send_all(self, messages: List[EmailMessage]) -> None:
        """Send concurrently; raise once every send has settled if any failed"""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.send, message) for message in messages),
            return_exceptions=True,
        )

        failures = [
            (message, result)
            for message, result in zip(messages, results)
            if isinstance(result, Exception)
        ]
        if failures:
            for message, error in failures:
                logger.error("Email send failed", to=message.to, error=str(error))
            raise NotificationDispatchError(
                "; ".join(str(error) for _, error in failures),
                [message.to for message, _ in failures],
            )


def get_email_sender() -> EmailSender:
    return EmailSender(settings.sendgrid_api_key, settings.from_email)
