"""
Out-of-band delivery of verification codes (WhatsApp via an n8n webhook).
"""

import logging
from typing import Optional

import httpx

from app.config import Settings
from app.utils.phone import mask_phone

log = logging.getLogger(__name__)


def otp_message(code: str, ttl_minutes: int = 5) -> str:
    return f"Your verification code: {code}\nValid for {ttl_minutes} minutes.\nDo not share this code."


class Notifier:
    async def send_code(self, phone: str, code: str) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class WebhookNotifier(Notifier):
    def __init__(self, url: str, timeout: float = 10.0, ttl_minutes: int = 5,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.ttl_minutes = ttl_minutes
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send_code(self, phone: str, code: str) -> bool:
        payload = {"phone": phone, "code": code, "message": otp_message(code, self.ttl_minutes)}
        try:
            r = await self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            log.error("WhatsApp webhook error for %s: %s", mask_phone(phone), e)
            return False
        if r.status_code < 200 or r.status_code >= 300:
            log.error("WhatsApp webhook failed for %s: status=%s", mask_phone(phone), r.status_code)
            return False
        log.info("OTP sent via webhook to %s", mask_phone(phone))
        return True

    async def close(self) -> None:
        await self._client.aclose()


class LogNotifier(Notifier):
    """Development only: writes the code to the server log."""

    async def send_code(self, phone: str, code: str) -> bool:
        log.warning("[DEV ONLY] OTP for %s: %s", phone, code)
        return True


def build_notifier(cfg: Settings) -> Notifier:
    if cfg.WA_WEBHOOK_URL:
        return WebhookNotifier(
            cfg.WA_WEBHOOK_URL,
            timeout=cfg.NOTIFIER_TIMEOUT_SECONDS,
            ttl_minutes=max(1, cfg.OTP_TTL_SECONDS // 60),
        )
    if not cfg.is_development:
        raise RuntimeError("WA_WEBHOOK_URL must be set outside development")
    log.info("Notifier: log (no WA_WEBHOOK_URL)")
    return LogNotifier()
