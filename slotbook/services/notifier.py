"""Outbound notifications for bookings.

The booking engine decides when and what to send; this module composes the
messages and hands them to the email / SMS transports. Failures are logged
and never propagate into booking state changes.
"""

import asyncio
import logging
from collections.abc import Iterable

from slotbook.core.config import settings
from slotbook.models.booking import Booking
from slotbook.models.provider import Channel, Provider
from slotbook.services import email_service, sms_service

logger = logging.getLogger(__name__)


def confirm_link(booking: Booking) -> str:
    return f"{settings.public_base_url.rstrip('/')}/confirm?booking={booking.id}&token={booking.confirmation_token}"


def cancel_link(booking: Booking) -> str:
    return f"{settings.public_base_url.rstrip('/')}/cancel?booking={booking.id}&token={booking.cancellation_token}"


class Notifier:
    async def _email(self, to_email: str, subject: str, html: str) -> None:
        await asyncio.wait_for(
            asyncio.to_thread(email_service.send_email_sync, to_email, subject, html),
            timeout=settings.notifier_timeout_seconds,
        )

    async def _sms(self, to_phone: str, body: str) -> None:
        await asyncio.wait_for(sms_service.send_sms(to_phone, body), timeout=settings.notifier_timeout_seconds)

    async def send_confirmation_request(
        self, booking: Booking, provider: Provider, confirm_url: str, cancel_url: str
    ) -> bool:
        html = email_service.build_confirmation_request_html(
            recipient_name=booking.customer_name,
            provider_name=provider.name,
            start=booking.start_time,
            end=booking.end_time,
            confirm_link=confirm_url,
            cancel_link=cancel_url,
        )
        try:
            await self._email(booking.customer_email, f"{provider.name} – Please confirm your appointment", html)
        except Exception as e:
            logger.exception("Confirmation request for booking %s failed: %s", booking.id, e)
            return False
        return True

    async def send_reminder(self, booking: Booking, provider: Provider, channels: Iterable[Channel]) -> dict[Channel, bool]:
        """Deliver a reminder on each channel; returns per-channel success."""
        results: dict[Channel, bool] = {}
        for channel in channels:
            try:
                if channel == Channel.EMAIL:
                    html = email_service.build_reminder_html(
                        booking.customer_name, provider.name, booking.start_time, booking.end_time
                    )
                    await self._email(booking.customer_email, f"{provider.name} – Appointment reminder", html)
                elif channel == Channel.SMS:
                    if not booking.customer_phone:
                        continue
                    body = (
                        f"Reminder: your appointment with {provider.name} is on "
                        f"{booking.start_time.strftime('%d.%m.%Y at %H:%M')}."
                    )
                    await self._sms(booking.customer_phone, body)
                results[channel] = True
            except Exception as e:
                logger.warning("Reminder for booking %s via %s failed: %s", booking.id, channel.value, e)
                results[channel] = False
        return results

    async def send_cancellation_notice(self, booking: Booking, provider: Provider) -> bool:
        """Tell the customer, and the provider's contact address if one is set."""
        recipients = [booking.customer_email]
        if provider.contact_email:
            recipients.append(provider.contact_email)
        html = email_service.build_cancellation_html(
            booking.customer_name, provider.name, booking.start_time, booking.end_time
        )
        ok = True
        for to_email in recipients:
            try:
                await self._email(to_email, f"{provider.name} – Appointment canceled", html)
            except Exception as e:
                logger.exception("Cancellation notice for booking %s to %s failed: %s", booking.id, to_email, e)
                ok = False
        return ok
