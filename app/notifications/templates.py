"""Email bodies for reservation alerts, confirmations and password resets.

Every message is rendered twice, plain text and HTML, carrying the same
information.
"""

from dataclasses import dataclass
from html import escape
from typing import List, Optional

from app.config import settings
from app.validation import format_guests, format_long_date


@dataclass
class EmailMessage:
    to: str
    subject: str
    text: str
    html: str


STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: #1a1a1a; color: #fff; padding: 20px; text-align: center; }
    .content { background: #f9f9f9; padding: 30px; border: 1px solid #ddd; }
    .detail { margin: 15px 0; padding: 10px; background: #fff; border-left: 3px solid #D4AF37; }
    .label { font-weight: bold; color: #1a1a1a; }
    .footer { text-align: center; padding: 20px; color: #777; font-size: 12px; }
"""


def _page(title: str, body: str, footer_links: bool = False) -> str:
    links = ""
    if footer_links:
        links = (
            f'<p><a href="{escape(settings.restaurant_instagram)}">Instagram</a> | '
            f'<a href="{escape(settings.restaurant_facebook)}">Facebook</a></p>'
        )
    return f"""<!DOCTYPE html>
<html>
<head><style>{STYLE}</style></head>
<body>
  <div class="container">
    <div class="header">
      <h1>{escape(settings.restaurant_name)}</h1>
      <p>{escape(title)}</p>
    </div>
    <div class="content">
{body}
    </div>
    <div class="footer">
      <p>{escape(settings.restaurant_name)} | {escape(settings.restaurant_phone)}</p>
      <p>{escape(settings.restaurant_address)}</p>
      {links}
    </div>
  </div>
</body>
</html>
"""


def _detail(label: str, value) -> str:
    return (
        f'      <div class="detail"><span class="label">{escape(label)}:</span> '
        f"<span>{escape(str(value))}</span></div>"
    )


def _staff_rows(reservation, reservation_id: str) -> List[tuple]:
    rows = [
        ("Customer Name", reservation.customer_name),
        ("Phone", reservation.customer_phone),
    ]
    if reservation.customer_email:
        rows.append(("Email", reservation.customer_email))
    rows += [
        ("Party Size", format_guests(reservation.party_size)),
        ("Date", format_long_date(reservation.reservation_date)),
        ("Time", reservation.reservation_time),
    ]
    if reservation.special_requests:
        rows.append(("Special Requests", reservation.special_requests))
    rows += [
        ("Status", "PENDING CONFIRMATION"),
        ("Reservation ID", reservation_id),
    ]
    return rows


def staff_alert(reservation, recipient: str) -> EmailMessage:
    """New-reservation alert for a staff recipient"""
    reservation_id = str(reservation.id)
    rows = _staff_rows(reservation, reservation_id)
    action = "ACTION REQUIRED: Please contact the customer to confirm this reservation."

    text_lines = ["New Reservation Request", ""]
    text_lines += [f"{label}: {value}" for label, value in rows]
    text_lines += [
        "",
        action,
        "",
        f"{settings.restaurant_name} | {settings.restaurant_phone}",
    ]

    body = "      <h2>Reservation Details</h2>\n"
    body += "\n".join(_detail(label, value) for label, value in rows)
    body += (
        '\n      <p style="margin-top: 30px; padding: 15px; background: #fff3cd; '
        'border-left: 3px solid #ffc107;">'
        f"<strong>ACTION REQUIRED:</strong> Please contact the customer to confirm this reservation.</p>"
    )

    return EmailMessage(
        to=recipient,
        subject=f"\U0001f37d️ New Reservation - {reservation.customer_name}",
        text="\n".join(text_lines) + "\n",
        html=_page("New Reservation Request", body),
    )


def customer_confirmation(reservation) -> EmailMessage:
    """Acknowledgement for the customer; the booking is still pending"""
    name = settings.restaurant_name
    rows = [
        ("Date", format_long_date(reservation.reservation_date)),
        ("Time", reservation.reservation_time),
        ("Party Size", format_guests(reservation.party_size)),
    ]
    if reservation.special_requests:
        rows.append(("Special Requests", reservation.special_requests))

    next_steps = (
        f"Our team will contact you shortly at {reservation.customer_phone} "
        "to confirm your reservation."
    )
    changes = (
        "If you have any questions or need to make changes, "
        f"please call us at {settings.restaurant_phone}."
    )

    text_lines = [
        "Thank You for Your Reservation Request",
        "",
        f"Dear {reservation.customer_name},",
        "",
        f"Thank you for choosing {name}! We have received your reservation request "
        "with the following details:",
        "",
    ]
    text_lines += [f"{label}: {value}" for label, value in rows]
    text_lines += [
        "",
        "What's Next?",
        next_steps,
        "",
        changes,
        "",
        "We look forward to serving you!",
        "",
        "Best regards,",
        f"The {name} Team",
        "",
        f"{name} | {settings.restaurant_phone}",
        settings.restaurant_address,
    ]

    body = f"      <p>Dear {escape(reservation.customer_name)},</p>\n"
    body += (
        f"      <p>Thank you for choosing {escape(name)}! We have received your reservation "
        "request with the following details:</p>\n"
    )
    body += "\n".join(_detail(label, value) for label, value in rows)
    body += (
        '\n      <p style="margin-top: 20px; padding: 15px; background: #e3f2fd; '
        'border-left: 3px solid #2196f3;">'
        f"<strong>What's Next?</strong><br>{escape(next_steps)}</p>\n"
        f"      <p>{escape(changes)}</p>\n"
        "      <p>We look forward to serving you!</p>\n"
        f"      <p>Best regards,<br><strong>The {escape(name)} Team</strong></p>"
    )

    return EmailMessage(
        to=reservation.customer_email,
        subject=f"Reservation Request Received - {name}",
        text="\n".join(text_lines) + "\n",
        html=_page("Thank You for Your Reservation Request", body, footer_links=True),
    )


def build_reservation_messages(reservation, staff_recipients: List[str]) -> List[EmailMessage]:
    """One alert per staff recipient, plus the customer copy when an email was given"""
    messages = [staff_alert(reservation, recipient) for recipient in staff_recipients]
    if reservation.customer_email:
        messages.append(customer_confirmation(reservation))
    return messages


def password_reset(email: str, reset_link: str, display_name: Optional[str] = None) -> EmailMessage:
    greeting = f"Hello {display_name}," if display_name else "Hello,"
    minutes = settings.password_reset_expire_minutes
    text = (
        f"{greeting}\n\n"
        f"Follow this link to reset your {settings.restaurant_name} password:\n"
        f"{reset_link}\n\n"
        f"The link expires in {minutes} minutes. If you didn't ask to reset your "
        "password, you can ignore this email.\n"
    )
    body = (
        f"      <p>{escape(greeting)}</p>\n"
        f"      <p>Follow this link to reset your {escape(settings.restaurant_name)} password:</p>\n"
        f'      <p><a href="{escape(reset_link)}">Reset password</a></p>\n'
        f"      <p>The link expires in {minutes} minutes. If you didn't ask to reset your "
        "password, you can ignore this email.</p>"
    )
    return EmailMessage(
        to=email,
        subject=f"Reset your {settings.restaurant_name} password",
        text=text,
        html=_page("Password Reset", body),
    )
