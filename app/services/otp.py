"""
One-time code issuance and verification.

Per phone the record moves NONE -> ACTIVE -> (VERIFIED | EXPIRED | LOCKED) -> NONE.
Every outcome is returned as a RequestResult / VerifyResult; nothing here raises
to the router for an expected rejection.
"""

import hashlib
import hmac
import logging
import math
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.config import Settings
from app.schemas.otp import FailureKind, OTPRecord, RequestResult, VerifyResult
from app.services import metrics
from app.services.notifier import Notifier
from app.services.rate_limit import RateLimiter
from app.services.store import KeyValueStore, LockTimeout, cooldown_key, otp_key
from app.utils.phone import mask_phone

log = logging.getLogger(__name__)

# Records outlive expires_at briefly so a late verify reads "expired", not "no code".
EXPIRED_GRACE_SECONDS = 60

MSG_LOCKED = "Too many failed attempts. Please try again later."
MSG_LOCKED_NOW = "Too many failed attempts. Account locked for {minutes} minutes."
MSG_COOLDOWN = "Please wait {seconds}s before requesting a new code."
MSG_NOT_FOUND = "No verification code found. Please request a new one."
MSG_EXPIRED = "Verification code has expired. Please request a new one."
MSG_INVALID = "Invalid code. {remaining} attempts remaining."
MSG_DELIVERY = "Could not deliver the verification code. Please try again."
MSG_BUSY = "Service busy. Please try again in a moment."
BUSY_RETRY_SECONDS = 1


def generate_code() -> str:
    """Uniform over the 900000 strings "100000".."999999"."""
    return str(100000 + secrets.randbelow(900000))


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def codes_match(code: str, hashed: str) -> bool:
    return hmac.compare_digest(hash_code(code), hashed)


def _ceil_seconds(seconds: float) -> int:
    return max(1, int(math.ceil(seconds)))


@dataclass(frozen=True)
class OTPPolicy:
    ttl_seconds: int = 5 * 60
    resend_cooldown_seconds: int = 60
    max_attempts: int = 5
    lockout_seconds: int = 15 * 60

    @classmethod
    def from_settings(cls, cfg: Settings) -> "OTPPolicy":
        return cls(
            ttl_seconds=cfg.OTP_TTL_SECONDS,
            resend_cooldown_seconds=cfg.OTP_RESEND_COOLDOWN_SECONDS,
            max_attempts=cfg.OTP_MAX_ATTEMPTS,
            lockout_seconds=cfg.OTP_LOCKOUT_SECONDS,
        )


class OTPManager:
    def __init__(
        self,
        store: KeyValueStore,
        rate_limiter: RateLimiter,
        notifier: Notifier,
        clock: Callable[[], float] = time.time,
        policy: Optional[OTPPolicy] = None,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.notifier = notifier
        self.clock = clock
        self.policy = policy or OTPPolicy()
        self.code_factory = code_factory

    async def _load(self, phone: str) -> Optional[OTPRecord]:
        raw = await self.store.get(otp_key(phone))
        if raw is None:
            return None
        return OTPRecord.model_validate(raw)

    async def _save(self, record: OTPRecord, ttl: float) -> None:
        await self.store.set(otp_key(record.phone), record.model_dump(), ttl)

    async def request(self, phone: str, model_id: str, issue_id: str, ip: Optional[str] = None) -> RequestResult:
        """Issue a fresh code for phone bound to model_id/issue_id and hand it to the notifier."""
        if ip is not None:
            gate = await self.rate_limiter.check_ip(ip)
            if not gate.ok:
                metrics.record_otp_request(gate.kind.value)
                return gate

        try:
            async with self.store.lock(otp_key(phone)):
                result, code = await self._issue(phone, model_id, issue_id)
        except LockTimeout:
            log.warning("OTP request for %s hit a busy lock", mask_phone(phone))
            result = RequestResult.fail(FailureKind.RATE_LIMITED, MSG_BUSY, retry_after=BUSY_RETRY_SECONDS)
        if not result.ok:
            metrics.record_otp_request(result.kind.value)
            return result

        try:
            delivered = await self.notifier.send_code(phone, code)
        except Exception:
            log.exception("Notifier raised for %s", mask_phone(phone))
            delivered = False

        if not delivered:
            await self._rollback(phone, hash_code(code))
            metrics.record_otp_request(FailureKind.DELIVERY_FAILED.value)
            return RequestResult.fail(FailureKind.DELIVERY_FAILED, MSG_DELIVERY)

        log.info("OTP issued for %s (model=%s issue=%s)", mask_phone(phone), model_id, issue_id)
        metrics.record_otp_request("sent")
        return RequestResult(ok=True)

    async def _issue(self, phone: str, model_id: str, issue_id: str):
        now = self.clock()
        existing = await self._load(phone)

        if existing and existing.locked_until and now < existing.locked_until:
            retry = _ceil_seconds(existing.locked_until - now)
            return RequestResult.fail(FailureKind.LOCKED, MSG_LOCKED, retry_after=retry), None

        cooldown = self.policy.resend_cooldown_seconds
        if existing and now - existing.last_sent_at < cooldown:
            wait = cooldown - (now - existing.last_sent_at)
            return self._cooldown_result(int(math.ceil(wait * 1000))), None

        cd = await self.rate_limiter.enforce_cooldown(cooldown_key(phone), cooldown)
        if not cd.ok:
            return self._cooldown_result(cd.wait_ms), None

        code = self.code_factory()
        record = OTPRecord(
            phone=phone,
            hashed_code=hash_code(code),
            model_id=model_id,
            issue_id=issue_id,
            expires_at=now + self.policy.ttl_seconds,
            attempts=0,
            locked_until=None,
            last_sent_at=now,
        )
        await self._save(record, self.policy.ttl_seconds + EXPIRED_GRACE_SECONDS)
        return RequestResult(ok=True), code

    def _cooldown_result(self, wait_ms: int) -> RequestResult:
        seconds = _ceil_seconds(wait_ms / 1000)
        return RequestResult.fail(
            FailureKind.COOLDOWN,
            MSG_COOLDOWN.format(seconds=seconds),
            retry_after=seconds,
            wait_ms=wait_ms,
        )

    async def _rollback(self, phone: str, hashed: str) -> None:
        """Undelivered codes must not stay verifiable; the phone may retry at once."""
        try:
            async with self.store.lock(otp_key(phone)):
                await self._discard(phone, hashed)
        except LockTimeout:
            await self._discard(phone, hashed)
        log.warning("OTP delivery failed for %s; record rolled back", mask_phone(phone))

    async def _discard(self, phone: str, hashed: str) -> None:
        current = await self._load(phone)
        if current and current.hashed_code == hashed:
            await self.store.delete(otp_key(phone))
        await self.store.delete(cooldown_key(phone))

    async def verify(self, phone: str, code: str) -> VerifyResult:
        try:
            async with self.store.lock(otp_key(phone)):
                result = await self._verify(phone, code)
        except LockTimeout:
            log.warning("OTP verify for %s hit a busy lock", mask_phone(phone))
            result = VerifyResult.fail(FailureKind.RATE_LIMITED, MSG_BUSY, retry_after=BUSY_RETRY_SECONDS)
        metrics.record_otp_verification("verified" if result.ok else result.kind.value)
        return result

    async def _verify(self, phone: str, code: str) -> VerifyResult:
        now = self.clock()
        record = await self._load(phone)

        if record is None:
            return VerifyResult.fail(FailureKind.NOT_FOUND, MSG_NOT_FOUND)

        if record.locked_until and now < record.locked_until:
            retry = _ceil_seconds(record.locked_until - now)
            return VerifyResult.fail(FailureKind.LOCKED, MSG_LOCKED, retry_after=retry)

        if now > record.expires_at:
            await self.store.delete(otp_key(phone))
            return VerifyResult.fail(FailureKind.EXPIRED, MSG_EXPIRED)

        if not codes_match(code, record.hashed_code):
            record.attempts += 1
            if record.attempts >= self.policy.max_attempts:
                lockout = self.policy.lockout_seconds
                record.locked_until = now + lockout
                await self._save(record, lockout)
                log.warning("OTP locked for %s after %s attempts", mask_phone(phone), record.attempts)
                return VerifyResult.fail(
                    FailureKind.LOCKED,
                    MSG_LOCKED_NOW.format(minutes=lockout // 60),
                    retry_after=_ceil_seconds(lockout),
                    attempts_remaining=0,
                )
            # keep the original expiry
            await self._save(record, (record.expires_at - now) + EXPIRED_GRACE_SECONDS)
            remaining = self.policy.max_attempts - record.attempts
            return VerifyResult.fail(
                FailureKind.INVALID_CODE,
                MSG_INVALID.format(remaining=remaining),
                attempts_remaining=remaining,
            )

        await self.store.delete(otp_key(phone))
        log.info("OTP verified for %s", mask_phone(phone))
        return VerifyResult(ok=True, model_id=record.model_id, issue_id=record.issue_id)
