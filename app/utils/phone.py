# app/utils/phone.py
import re

_NON_DIGITS = re.compile(r"[^\d]")
_CODE_RE = re.compile(r"^\d{6}$")


def normalize_msisdn(raw: str) -> str:
    """Canonical Malaysian subscriber number: 0123456789 / +60123456789 -> 60123456789"""
    digits = _NON_DIGITS.sub("", raw or "")
    if digits.startswith("0"):
        return "6" + digits
    if digits.startswith("6"):
        return digits
    return "60" + digits


def is_valid_msisdn(msisdn: str) -> bool:
    if not msisdn.startswith("60"):
        return False
    rest = msisdn[2:]
    return rest.isdigit() and 9 <= len(rest) <= 10


def is_valid_code(code: str) -> bool:
    return bool(_CODE_RE.match(code or ""))


def mask_phone(phone: str) -> str:
    """Keep country prefix and last four digits for logs."""
    if len(phone) < 8:
        return phone
    return f"{phone[:-8]}****{phone[-4:]}"
