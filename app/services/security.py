import logging
import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends, HTTPException, Request, status

from app.config import Settings
from app.services.container import Services, get_services

log = logging.getLogger(__name__)

ph = PasswordHasher()

ADMIN_COOKIE = "admin_token"


class AdminUser:
    def __init__(self, username: str):
        self.username = username


def hash_password(pw: str) -> str:
    return ph.hash(pw)


def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return ph.verify(pw_hash, pw)
    except (VerificationError, InvalidHashError):
        return False


def verify_credentials(cfg: Settings, username: str, password: str) -> bool:
    """Single admin account from settings; username is case-insensitive."""
    expected_user = (cfg.ADMIN_USERNAME or "").strip()
    if not expected_user or not (cfg.ADMIN_PASSWORD_HASH or cfg.ADMIN_PASSWORD):
        log.error("ADMIN_USERNAME or ADMIN_PASSWORD not configured")
        return False

    user_ok = secrets.compare_digest(username.strip().lower().encode(), expected_user.lower().encode())
    if cfg.ADMIN_PASSWORD_HASH:
        pw_ok = verify_password(password, cfg.ADMIN_PASSWORD_HASH)
    else:
        pw_ok = secrets.compare_digest(password.encode(), cfg.ADMIN_PASSWORD.encode())
    return user_ok and pw_ok


def cookie_settings(cfg: Settings, samesite: str = "lax") -> dict:
    return {
        "httponly": True,
        "secure": cfg.env == "production",
        "samesite": samesite,
        "path": "/",
    }


async def require_admin(request: Request, services: Services = Depends(get_services)) -> AdminUser:
    token = request.cookies.get(ADMIN_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    username = services.admin_tokens.verify_token(token)
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return AdminUser(username)
