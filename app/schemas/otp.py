from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FailureKind(str, Enum):
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    COOLDOWN = "cooldown"
    LOCKED = "locked"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    DELIVERY_FAILED = "delivery_failed"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"


class OTPRecord(BaseModel):
    """Stored under otp:<phone>; timestamps are epoch seconds."""
    model_config = ConfigDict(protected_namespaces=())

    phone: str
    hashed_code: str
    model_id: str
    issue_id: str
    expires_at: float
    attempts: int = 0
    locked_until: Optional[float] = None
    last_sent_at: float


class CooldownResult(BaseModel):
    ok: bool
    wait_ms: int = 0


class Outcome(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    ok: bool
    kind: Optional[FailureKind] = None
    message: Optional[str] = None
    retry_after: Optional[int] = None

    @classmethod
    def fail(cls, kind: FailureKind, message: str, retry_after: Optional[int] = None, **extra):
        return cls(ok=False, kind=kind, message=message, retry_after=retry_after, **extra)


class RequestResult(Outcome):
    wait_ms: Optional[int] = None


class VerifyResult(Outcome):
    model_id: Optional[str] = None
    issue_id: Optional[str] = None
    attempts_remaining: Optional[int] = None


class QuoteClaims(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    phone: str
    model_id: str
    issue_id: str
    iat: int
    exp: int


class TokenResult(Outcome):
    payload: Optional[QuoteClaims] = None


# --- HTTP payloads ---

class OTPRequestIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    phone: str = Field(min_length=1, max_length=32)
    model_id: str = Field(alias="modelId", min_length=1, max_length=64)
    issue_id: str = Field(alias="issueId", min_length=1, max_length=64)


class OTPVerifyIn(BaseModel):
    phone: str = Field(min_length=1, max_length=32)
    code: str = Field(pattern=r"^\d{6}$")
