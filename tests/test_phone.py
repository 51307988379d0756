"""Tests for phone number normalization (E.164)."""


from contextcrm.infrastructure.phone import normalize_phone, phone_normalizer


def test_normalize_with_country_code_returns_e164():
    assert normalize_phone("+39 312 345 6789", default_region=None) == "+393123456789"
    assert normalize_phone("+1 202 555 1234", default_region=None) == "+12025551234"


def test_normalize_without_country_code_uses_default_region():
    assert normalize_phone("202 555 1234", default_region="US") == "+12025551234"
    assert normalize_phone("312 345 6789", default_region="IT") == "+393123456789"


def test_normalize_invalid_returns_none():
    assert normalize_phone("", default_region=None) is None
    assert normalize_phone("   ", default_region=None) is None
    assert normalize_phone("abc", default_region=None) is None
    assert normalize_phone("+1", default_region=None) is None
    assert normalize_phone("123", default_region="US") is None  # too short


def test_phone_normalizer_binds_region():
    normalize = phone_normalizer("US")
    assert normalize("202 555 1234") == "+12025551234"
    assert normalize("12") is None


def test_normalize_strips_tel_scheme():
    assert normalize_phone("tel:+1 202 555 1234") == "+12025551234"
    assert normalize_phone("tel:") is None
