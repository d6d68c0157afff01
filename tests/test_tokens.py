# tests/test_tokens.py
"""Quote and admin token minting/verification"""

from jose import jwt

from app.schemas.otp import FailureKind
from app.services.tokens import AdminTokenService, QuoteTokenService
from tests.helpers import TEST_SECRET, FakeClock


def _flip(token: str, index: int) -> str:
    ch = token[index]
    repl = "A" if ch != "A" else "B"
    return token[:index] + repl + token[index + 1:]


def test_round_trip_within_ttl():
    clock = FakeClock()
    svc = QuoteTokenService(TEST_SECRET, 600, clock)
    token = svc.create_token("60123456789", "ip15", "screen")

    clock.advance(599)
    res = svc.verify_token(token)
    assert res.ok
    assert res.payload.phone == "60123456789"
    assert res.payload.model_id == "ip15"
    assert res.payload.issue_id == "screen"
    assert res.payload.exp - res.payload.iat == 600


def test_expired_after_ten_minutes():
    clock = FakeClock()
    svc = QuoteTokenService(TEST_SECRET, 600, clock)
    token = svc.create_token("60123456789", "ip15", "screen")

    clock.advance(600)
    res = svc.verify_token(token)
    assert not res.ok
    assert res.kind == FailureKind.TOKEN_EXPIRED
    assert "expired" in res.message


def test_tampered_signature_is_invalid_not_expired():
    clock = FakeClock()
    svc = QuoteTokenService(TEST_SECRET, 600, clock)
    token = svc.create_token("60123456789", "ip15", "screen")
    sig_start = token.rindex(".") + 1

    res = svc.verify_token(_flip(token, sig_start + 3))
    assert res.kind == FailureKind.TOKEN_INVALID

    # even once the original would have expired
    clock.advance(3600)
    assert svc.verify_token(_flip(token, sig_start + 3)).kind == FailureKind.TOKEN_INVALID


def test_tampered_payload_is_invalid():
    svc = QuoteTokenService(TEST_SECRET, 600, FakeClock())
    token = svc.create_token("60123456789", "ip15", "screen")
    header, payload, sig = token.split(".")
    forged = jwt.encode({"phone": "60111111111", "modelId": "ip15", "issueId": "screen",
                         "typ": "quote", "iat": 1, "exp": 2**31}, "some-other-secret-that-is-long-enough", algorithm="HS256")
    assert svc.verify_token(forged).kind == FailureKind.TOKEN_INVALID
    assert svc.verify_token(f"{header}.{forged.split('.')[1]}.{sig}").kind == FailureKind.TOKEN_INVALID


def test_garbage_and_empty_tokens_are_invalid():
    svc = QuoteTokenService(TEST_SECRET, 600, FakeClock())
    for raw in ("", "not-a-token", "a.b.c"):
        res = svc.verify_token(raw)
        assert res.kind == FailureKind.TOKEN_INVALID
        assert res.message == "Invalid quote token."


def test_admin_token_is_not_a_quote_token():
    clock = FakeClock()
    quote = QuoteTokenService(TEST_SECRET, 600, clock)
    admin = AdminTokenService(TEST_SECRET, 86400, clock)

    admin_token = admin.create_token("admin")
    assert quote.verify_token(admin_token).kind == FailureKind.TOKEN_INVALID
    assert admin.verify_token(quote.create_token("60123456789", "ip15", "screen")) is None
    assert admin.verify_token(admin_token) == "admin"

    clock.advance(86400)
    assert admin.verify_token(admin_token) is None


def test_missing_claims_are_invalid():
    svc = QuoteTokenService(TEST_SECRET, 600, FakeClock())
    token = svc.encode({"phone": "60123456789"})
    assert svc.verify_token(token).kind == FailureKind.TOKEN_INVALID
