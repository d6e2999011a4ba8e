import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from agenda.core.config import settings

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from a background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def _appointment_block(service_name: str, start: datetime, end: datetime, notes: str | None) -> str:
    rows = [
        ("Service", escape(service_name)),
        ("Date", start.strftime("%A, %d %B %Y")),
        ("Time", f"{start:%H:%M} - {end:%H:%M}"),
    ]
    if notes:
        rows.append(("Notes", escape(notes)))
    cells = "".join(
        f'<tr><td style="padding:4px 12px 4px 0;color:#6b7280;">{label}</td>'
        f'<td style="padding:4px 0;font-weight:600;color:#111827;">{value}</td></tr>'
        for label, value in rows
    )
    return f'<table role="presentation" cellspacing="0" cellpadding="0">{cells}</table>'


def build_booking_confirmation_html(
    recipient_name: str | None,
    business_name: str,
    service_name: str,
    start: datetime,
    end: datetime,
    notes: str | None,
) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="margin:0;padding:24px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background:#f3f4f6;">
  <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;padding:32px;">
    <h1 style="margin:0 0 8px 0;font-size:22px;color:#111827;">Booking received</h1>
    <p style="margin:0 0 24px 0;color:#6b7280;">Hi {escape(recipient_name or 'there')}, your appointment with
    <strong>{escape(business_name)}</strong> is registered and pending confirmation by the business.</p>
    {_appointment_block(service_name, start, end, notes)}
    <p style="margin:24px 0 0 0;font-size:13px;color:#6b7280;">{escape(settings.site_name)}</p>
  </div>
</body>
</html>
"""


def build_new_booking_notice_html(
    business_name: str,
    customer_name: str | None,
    customer_email: str,
    service_name: str,
    start: datetime,
    end: datetime,
    notes: str | None,
) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="margin:0;padding:24px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background:#f3f4f6;">
  <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;padding:32px;">
    <h1 style="margin:0 0 8px 0;font-size:22px;color:#111827;">New booking for {escape(business_name)}</h1>
    <p style="margin:0 0 24px 0;color:#6b7280;">{escape(customer_name or customer_email)}
    ({escape(customer_email)}) booked an appointment. Confirm or cancel it from your dashboard.</p>
    {_appointment_block(service_name, start, end, notes)}
  </div>
</body>
</html>
"""


def send_booking_confirmation_email(
    to_email: str,
    recipient_name: str | None,
    business_name: str,
    service_name: str,
    start: datetime,
    end: datetime,
    notes: str | None = None,
) -> None:
    """Compose and send the customer's booking confirmation (call from background task)."""
    subject = f"{business_name} - booking received"
    html = build_booking_confirmation_html(recipient_name, business_name, service_name, start, end, notes)
    _send_email_sync(to_email, subject, html)


def send_new_booking_notice_email(
    business_email: str,
    business_name: str,
    customer_name: str | None,
    customer_email: str,
    service_name: str,
    start: datetime,
    end: datetime,
    notes: str | None = None,
) -> None:
    subject = f"New booking on {start:%d/%m/%Y %H:%M}"
    html = build_new_booking_notice_html(
        business_name, customer_name, customer_email, service_name, start, end, notes
    )
    _send_email_sync(business_email, subject, html)
