from datetime import date, timedelta

import pytest

from permit_intake.config.constants import ESTABLISHMENT_TYPES
from permit_intake.validation import (
    FIELD_VALIDATORS,
    validate_email,
    validate_establishment_type,
    validate_field,
    validate_opening_date,
    validate_phone,
    validate_text_field,
)


@pytest.mark.parametrize(
    "raw",
    ["5095551234", "(509) 555-1234", "509-555-1234", "509.555.1234", " 509 555 1234 "],
)
def test_phone_normalizes_to_bare_digits(raw):
    result = validate_phone(raw)
    assert result.is_valid
    assert result.normalized_value == "5095551234"


@pytest.mark.parametrize("raw", ["555-1234", "1-509-555-12345", "abc"])
def test_phone_rejects_wrong_digit_count(raw):
    result = validate_phone(raw)
    assert not result.is_valid
    assert result.error == "Phone number must be 10 digits"


def test_phone_required():
    assert validate_phone("  ").error == "Phone number is required"


def test_email_is_trimmed_and_lowercased():
    result = validate_email("  user@EXAMPLE.com ")
    assert result.is_valid
    assert result.normalized_value == "user@example.com"


@pytest.mark.parametrize("raw", ["not-an-email", "a@b", "a b@c.com", "@example.com"])
def test_email_rejects_malformed(raw):
    result = validate_email(raw)
    assert not result.is_valid
    assert result.error == "Invalid email format"


@pytest.mark.parametrize("raw,expected", [("restaurant", "Restaurant"), ("FOOD TRUCK", "Food Truck"), (" cafe ", "Cafe")])
def test_establishment_type_returns_canonical_casing(raw, expected):
    result = validate_establishment_type(raw)
    assert result.is_valid
    assert result.normalized_value == expected


def test_establishment_type_error_lists_all_options():
    result = validate_establishment_type("Nightclub")
    assert not result.is_valid
    for establishment_type in ESTABLISHMENT_TYPES:
        assert establishment_type in result.error


def test_opening_date_accepts_today_and_future():
    today = date(2030, 5, 1)
    assert validate_opening_date("2030-05-01", today=today).is_valid
    assert validate_opening_date("2031-01-15", today=today).is_valid


def test_opening_date_rejects_yesterday():
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    result = validate_opening_date(yesterday)
    assert not result.is_valid
    assert result.error == "Opening date must be today or in the future"


def test_opening_date_defaults_to_current_date():
    assert validate_opening_date(date.today().isoformat()).is_valid


@pytest.mark.parametrize("raw", ["2025/13/40", "abc", "03-15-2030", "2030-3-15"])
def test_opening_date_rejects_malformed(raw):
    result = validate_opening_date(raw)
    assert not result.is_valid
    assert "YYYY-MM-DD" in result.error


def test_opening_date_rejects_impossible_calendar_date():
    result = validate_opening_date("2030-02-30")
    assert not result.is_valid
    assert result.error == "Invalid date"


def test_text_field_trims_and_enforces_length():
    assert validate_text_field("  Joe's Pizza ", "Establishment name").normalized_value == "Joe's Pizza"
    assert validate_text_field("J", "Owner name").error == "Owner name must be at least 2 characters"
    assert validate_text_field("", "Owner name").error == "Owner name is required"
    assert not validate_text_field("x" * 256, "Street address").is_valid


def test_validate_field_dispatches_by_name():
    assert validate_field("ownerEmail", "A@B.CO").normalized_value == "a@b.co"
    assert validate_field("establishmentPhone", "(509) 555-0000").normalized_value == "5095550000"


def test_validate_field_rejects_unknown_field():
    result = validate_field("favoriteColor", "blue")
    assert not result.is_valid
    assert result.error == "Unknown field: favoriteColor"


def test_every_application_field_has_a_validator():
    from permit_intake.config.constants import APPLICATION_FIELDS

    assert set(FIELD_VALIDATORS) == set(APPLICATION_FIELDS)
