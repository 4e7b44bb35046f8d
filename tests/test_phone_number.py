"""Test module for phone number normalization."""

import pytest


@pytest.mark.parametrize(
    "raw_number",
    [
        "+12015550123",
        "12015550123",
        "+1 (201) 555-0123",
        "+1.201.555.0123",
        " +1 201 555 0123 ",
    ],
)
def test_normalize_formats(raw_number):
    """Test formatting characters are ignored and a '+' is added."""
    from src.phone_number import normalize_phone_number

    assert normalize_phone_number(raw_number) == "+12015550123"


def test_normalize_is_idempotent():
    """Test normalizing a normalized number changes nothing."""
    from src.phone_number import normalize_phone_number

    for raw_number in ["447400123456", "+1 201 555 0123"]:
        normalized = normalize_phone_number(raw_number)
        assert normalize_phone_number(normalized) == normalized


@pytest.mark.parametrize("raw_number", ["", None, 12015550123])
def test_normalize_missing(raw_number):
    """Test missing or non-string input is rejected."""
    from src.errors import ValidationError
    from src.phone_number import normalize_phone_number

    with pytest.raises(ValidationError, match="required"):
        normalize_phone_number(raw_number)


@pytest.mark.parametrize("raw_number", ["abc", "+", "+1555000123", "+999123456789"])
def test_normalize_invalid(raw_number):
    """Test numbers that belong to no region are rejected."""
    from src.errors import ValidationError
    from src.phone_number import INVALID_PHONE_MESSAGE, normalize_phone_number

    with pytest.raises(ValidationError) as exc_info:
        normalize_phone_number(raw_number)

    assert exc_info.value.message == INVALID_PHONE_MESSAGE
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize(
    "raw_number, expected",
    [("0044 7400 123456", "+447400123456"), ("001 201 555 0123", "+12015550123")],
)
def test_normalize_international_prefix(raw_number, expected):
    """Test a leading 00 is read as the international '+' prefix."""
    from src.phone_number import normalize_phone_number

    assert normalize_phone_number(raw_number) == expected
