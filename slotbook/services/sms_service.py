import logging

import httpx

from slotbook.core.config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


async def send_sms(to_phone: str, body: str) -> None:
    """Send an SMS through the Twilio REST API. Raises on rejected or failed requests."""
    if not settings.sms_enabled:
        logger.info("[sms] (dry-run) to=%s body=%s", to_phone, body)
        return
    if not to_phone.startswith("+"):
        raise ValueError(f"Phone number must be in E.164 format (e.g. +491701234567), got {to_phone!r}")
    async with httpx.AsyncClient(timeout=settings.notifier_timeout_seconds) as client:
        resp = await client.post(
            TWILIO_MESSAGES_URL.format(sid=settings.twilio_account_sid),
            auth=(settings.twilio_account_sid, settings.twilio_auth_token),
            data={"To": to_phone, "From": settings.twilio_from, "Body": body},
        )
    if resp.status_code not in (200, 201):
        logger.warning("Twilio rejected SMS to %s: status=%s body=%s", to_phone, resp.status_code, resp.text[:500])
        resp.raise_for_status()
    logger.info("SMS sent to %s", to_phone)
