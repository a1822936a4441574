"""
Pickup notifications.

The core only builds {to, subject, html, attachments} and hands it to an
EmailSender. ResendEmailSender posts to the Resend HTTP API; without an API
key it logs the message instead of sending (development).
"""

import base64
import html
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Protocol, Union

import httpx
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..models.booking import Booking
from ..exceptions import NotFoundError, ValidationError
from ..utils.db_helpers import store_guard
from ..utils.formatting import pickup_time_range

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: Union[bytes, str]
    content_type: Optional[str] = None

    def to_payload(self) -> Dict[str, str]:
        raw = self.content.encode("utf-8") if isinstance(self.content, str) else self.content
        payload = {"filename": self.filename, "content": base64.b64encode(raw).decode("ascii")}
        if self.content_type:
            payload["content_type"] = self.content_type
        return payload


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    attachments: List[EmailAttachment] = field(default_factory=list)
    from_address: Optional[str] = None


@dataclass
class EmailResult:
    """Outcome of one send, mirrors the transport response"""
    success: bool
    status_code: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None
    mock: bool = False


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> EmailResult:
        ...


class ResendEmailSender:
    """
    Sends through the Resend HTTP API.

    No retries: a failed send is reported to the caller, who decides.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        default_from: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.api_url = api_url or settings.email_api_url
        self.default_from = default_from or settings.email_from
        self.timeout = timeout or settings.email_timeout_seconds
        self._client = client

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, message: EmailMessage) -> dict:
        payload = {
            "from": message.from_address or self.default_from,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.attachments:
            payload["attachments"] = [a.to_payload() for a in message.attachments]
        return payload

    def send(self, message: EmailMessage) -> EmailResult:
        if not message.to:
            raise ValidationError("email recipient is required")

        if not self.api_key:
            logger.info(
                f"Email not sent (no RESEND_API_KEY): to={message.to} subject={message.subject!r} "
                f"attachments={[a.filename for a in message.attachments]}"
            )
            return EmailResult(success=True, mock=True)

        start_time = time.time()
        try:
            if self._client is not None:
                response = self._client.post(self.api_url, headers=self._get_headers(), json=self._payload(message))
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=self._get_headers(), json=self._payload(message))
        except httpx.HTTPError as e:
            logger.error(f"Email transport failed for {message.to}: {e}")
            return EmailResult(success=False, error=str(e))

        duration_ms = int((time.time() - start_time) * 1000)
        try:
            data = response.json()
        except ValueError:
            data = {}

        if 200 <= response.status_code < 300:
            logger.info(f"Email sent to {message.to} in {duration_ms}ms")
            return EmailResult(success=True, status_code=response.status_code, message_id=data.get("id"))

        error = data.get("message") or data.get("error") or response.text or f"HTTP {response.status_code}"
        logger.error(f"Email rejected ({response.status_code}) for {message.to}: {error}")
        return EmailResult(success=False, status_code=response.status_code, error=str(error))


# ============================================================================
# PICKUP EMAIL
# ============================================================================

def format_activity_date(value: date) -> str:
    """Saturday, December 27, 2025"""
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def build_pickup_email(
    booking: Booking,
    company_name: str,
    contact_info: str = "",
    window_minutes: Optional[int] = None,
) -> EmailMessage:
    """
    Pickup confirmation for one booking.

    Raises:
        ValidationError: no customer email, or no pickup time set
    """
    if not booking.customer_email:
        raise ValidationError("Customer email not available")
    window_minutes = settings.pickup_window_minutes if window_minutes is None else window_minutes
    pickup_window = pickup_time_range(booking.pickup_time, window_minutes)
    if not pickup_window:
        raise ValidationError("Pickup time not set")

    program_name = booking.program.name if booking.program else "Tour"
    hotel_name = (booking.hotel.name if booking.hotel else None) or booking.custom_pickup_location or "Your hotel"
    reference = booking.booking_number or booking.id

    esc = html.escape
    details = [
        ("Booking", reference),
        ("Program", program_name),
        ("Date", format_activity_date(booking.activity_date)),
        ("Pickup time", pickup_window),
        ("Pickup location", hotel_name),
        ("Guests", f"{booking.adults or 0} adults, {booking.children or 0} children, {booking.infants or 0} infants"),
    ]
    rows = "".join(
        f'<tr><td style="padding: 6px 12px; color: #6b7280;">{esc(label)}</td>'
        f'<td style="padding: 6px 12px; font-weight: 600; color: #1f2937;">{esc(str(value))}</td></tr>'
        for label, value in details
    )
    contact = (
        f'<p style="margin: 16px 0 0 0; font-size: 14px; color: #374151;">{esc(contact_info)}</p>'
        if contact_info else ""
    )

    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="color-scheme" content="light"></head>
<body style="margin: 0; padding: 24px; background-color: #f4f4f5; font-family: Arial, sans-serif;">
  <table width="600" cellpadding="0" cellspacing="0" border="0" align="center" style="background-color: #ffffff; border-radius: 16px;">
    <tr><td style="padding: 32px 40px; text-align: center;"><h1 style="margin: 0; font-size: 24px; color: #1f2937;">{esc(company_name)}</h1></td></tr>
    <tr><td style="padding: 0 40px;">
      <p style="margin: 0 0 16px 0; font-size: 16px; color: #374151;">Dear {esc(booking.customer_name or 'Guest')},</p>
      <p style="margin: 0 0 16px 0; font-size: 16px; color: #374151;">Your pickup time is confirmed. Please be ready in the lobby during the pickup window below.</p>
      <table width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color: #eff6ff; border-radius: 12px;">{rows}</table>
      {contact}
    </td></tr>
    <tr><td style="padding: 24px 40px; text-align: center; font-size: 13px; color: #9ca3af;">&copy; {date.today().year} {esc(company_name)}</td></tr>
  </table>
</body>
</html>"""

    return EmailMessage(
        to=booking.customer_email,
        subject=f"Pickup Time Confirmed - {reference}",
        html=body,
    )


def send_pickup_email(
    db: Session,
    company_id: str,
    booking_id: str,
    sender: EmailSender,
    company_name: str,
    contact_info: str = "",
) -> EmailResult:
    with store_guard(db, "send_pickup_email"):
        booking = db.query(Booking).options(
            joinedload(Booking.program),
            joinedload(Booking.hotel),
        ).filter(
            Booking.id == booking_id,
            Booking.company_id == company_id,
            Booking.deleted_at.is_(None),
        ).first()
    if booking is None:
        raise NotFoundError(f"Booking not found: {booking_id}")

    message = build_pickup_email(booking, company_name, contact_info)
    return sender.send(message)


def get_email_sender() -> EmailSender:
    """Dependency returning the configured email transport"""
    return ResendEmailSender()
