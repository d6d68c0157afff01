# tests/test_props.py
"""Property-based tests to catch logic bugs early"""

from hypothesis import given, strategies as st

from app.services.catalog import format_price
from app.services.otp import codes_match, generate_code, hash_code
from app.utils.phone import is_valid_code, is_valid_msisdn, mask_phone, normalize_msisdn


@given(st.integers(min_value=0, max_value=50))
def test_generated_codes_are_six_digits(_):
    """Codes never start with zero and always pass the format check"""
    code = generate_code()
    assert is_valid_code(code)
    assert 100000 <= int(code) <= 999999


@given(st.from_regex(r"[0-9]{6}", fullmatch=True), st.from_regex(r"[0-9]{6}", fullmatch=True))
def test_hash_matches_only_its_code(a, b):
    hashed = hash_code(a)
    assert hashed == hash_code(a)
    assert codes_match(a, hashed)
    assert codes_match(b, hashed) == (a == b)


@given(st.from_regex(r"1[0-9]{8,9}", fullmatch=True), st.sampled_from(["0", "60", "+60", "+60 "]))
def test_normalize_is_canonical_and_idempotent(subscriber, prefix):
    """Local, international and spaced forms collapse to one MSISDN"""
    phone = normalize_msisdn(prefix + subscriber)
    assert phone == "60" + subscriber
    assert is_valid_msisdn(phone)
    assert normalize_msisdn(phone) == phone


@given(st.from_regex(r"60[0-9]{9,10}", fullmatch=True))
def test_mask_keeps_only_prefix_and_last_four(phone):
    masked = mask_phone(phone)
    assert masked == phone[:-8] + "****" + phone[-4:]
    assert len(masked) == len(phone)


@given(st.integers(min_value=1, max_value=10_000), st.integers(min_value=0, max_value=10_000))
def test_range_display_keeps_bounds_in_order(low, spread):
    text = format_price({"type": "range", "min": float(low), "max": float(low + spread)}, "RM")
    assert text == f"RM {low} - {low + spread}"
