import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from slotbook.core.config import settings

logger = logging.getLogger(__name__)


def send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Run it in a worker thread from async code.

    Raises on SMTP failure so the caller can record the outcome per channel.
    """
    if not settings.email_enabled:
        logger.info("[email] (dry-run) to=%s subject=%s", to_email, subject)
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.notifier_timeout_seconds) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.from_email, [to_email], msg.as_string())
    logger.info("Email sent to %s", to_email)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _when(start: datetime, end: datetime) -> tuple[str, str]:
    return start.strftime("%A, %B %d, %Y"), f"{start.strftime('%H:%M')} – {end.strftime('%H:%M')}"


def _layout(title: str, greeting: str, body_html: str, provider_name: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Oxygen,Ubuntu,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{title}</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">{greeting}</p>
              {body_html}
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0;font-size:13px;font-weight:600;color:#111827;">{_html_escape(provider_name)}</p>
              <p style="margin:0;font-size:12px;color:#6b7280;">Sent by {settings.site_name}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _slot_box(start: datetime, end: datetime) -> str:
    date_str, time_str = _when(start, end)
    return f"""
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:20px 24px;">
                    <p style="margin:0 0 8px 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Date</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{date_str}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Time</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{time_str}</p>
                  </td>
                </tr>
              </table>"""


def build_confirmation_request_html(
    recipient_name: str,
    provider_name: str,
    start: datetime,
    end: datetime,
    confirm_link: str,
    cancel_link: str,
) -> str:
    """Double opt-in mail: the booking is held as pending until the link is followed."""
    body = f"""{_slot_box(start, end)}
              <p style="margin:0 0 16px 0;font-size:14px;color:#374151;">Please confirm your booking:</p>
              <p style="margin:0 0 24px 0;"><a href="{confirm_link}" style="background:#111827;color:#ffffff;padding:10px 18px;border-radius:6px;text-decoration:none;">Confirm booking</a></p>
              <p style="margin:0;font-size:13px;color:#6b7280;">Can't make it? <a href="{cancel_link}">Cancel this appointment</a></p>"""
    return _layout(
        "Please confirm your appointment",
        f"Hi {_html_escape(recipient_name) or 'there'}, your appointment has been reserved.",
        body,
        provider_name,
    )


def build_reminder_html(recipient_name: str, provider_name: str, start: datetime, end: datetime) -> str:
    return _layout(
        "Appointment reminder",
        f"Hi {_html_escape(recipient_name) or 'there'}, this is a reminder of your upcoming appointment.",
        _slot_box(start, end),
        provider_name,
    )


def build_cancellation_html(recipient_name: str, provider_name: str, start: datetime, end: datetime) -> str:
    return _layout(
        "Appointment canceled",
        f"Hi {_html_escape(recipient_name) or 'there'}, the following appointment has been canceled.",
        _slot_box(start, end),
        provider_name,
    )
