import logging
import time
from typing import Any, Callable, Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from app.schemas.otp import FailureKind, QuoteClaims, TokenResult

log = logging.getLogger(__name__)

ALGORITHM = "HS256"

EXPIRED_MESSAGE = "Quote token has expired. Please verify again."
INVALID_MESSAGE = "Invalid quote token."


class TokenService:
    """Stateless HS256 tokens of one `typ`; validity is signature + expiry only."""

    def __init__(self, secret: str, ttl_seconds: int, typ: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("token secret must not be empty")
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.typ = typ
        self.clock = clock

    def encode(self, claims: Dict[str, Any]) -> str:
        now = int(self.clock())
        payload = dict(claims)
        payload.update({"typ": self.typ, "iat": now, "exp": now + self.ttl_seconds})
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Claims if the signature and type check out, else None. Expiry is left to the caller."""
        if not token:
            return None
        try:
            data = jwt.decode(token, self.secret, algorithms=[ALGORITHM], options={"verify_exp": False})
        except JWTError:
            return None
        if data.get("typ") != self.typ or not isinstance(data.get("exp"), int):
            return None
        return data

    def is_expired(self, data: Dict[str, Any]) -> bool:
        return self.clock() >= data["exp"]


class QuoteTokenService(TokenService):
    def __init__(self, secret: str, ttl_seconds: int = 600, clock: Callable[[], float] = time.time):
        super().__init__(secret, ttl_seconds, "quote", clock)

    def create_token(self, phone: str, model_id: str, issue_id: str) -> str:
        return self.encode({"phone": phone, "modelId": model_id, "issueId": issue_id})

    def verify_token(self, token: str) -> TokenResult:
        data = self.decode(token)
        if data is None:
            return TokenResult.fail(FailureKind.TOKEN_INVALID, INVALID_MESSAGE)
        try:
            claims = QuoteClaims(
                phone=data["phone"],
                model_id=data["modelId"],
                issue_id=data["issueId"],
                iat=data["iat"],
                exp=data["exp"],
            )
        except (KeyError, ValidationError):
            return TokenResult.fail(FailureKind.TOKEN_INVALID, INVALID_MESSAGE)
        if self.is_expired(data):
            return TokenResult.fail(FailureKind.TOKEN_EXPIRED, EXPIRED_MESSAGE)
        return TokenResult(ok=True, payload=claims)


class AdminTokenService(TokenService):
    def __init__(self, secret: str, ttl_seconds: int = 86400, clock: Callable[[], float] = time.time):
        super().__init__(secret, ttl_seconds, "admin", clock)

    def create_token(self, username: str) -> str:
        return self.encode({"sub": username})

    def verify_token(self, token: str) -> Optional[str]:
        """Username for a live session token, else None."""
        data = self.decode(token)
        if data is None or self.is_expired(data):
            return None
        sub = data.get("sub")
        return sub if isinstance(sub, str) and sub else None
