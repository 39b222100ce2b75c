"""
Field validation shared by the web form, the external API, the voice tools and
manual edits from the mobile view.

Each rule returns a ``ValidationResult`` instead of raising, so the live-edit
path can hand the error message straight back to the caller (or to the voice
agent) while the batch schema converts it into a pydantic validation error.
All functions here are pure.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Optional

from permit_intake.config.constants import ESTABLISHMENT_TYPES, MAX_TEXT_LENGTH

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single field value."""

    is_valid: bool
    error: Optional[str] = None
    normalized_value: Optional[str] = None

    @classmethod
    def ok(cls, value: str) -> "ValidationResult":
        return cls(is_valid=True, normalized_value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(is_valid=False, error=error)


def _is_blank(value) -> bool:
    return value is None or not isinstance(value, str) or value.strip() == ""


def validate_establishment_type(value: str) -> ValidationResult:
    """Match an establishment type case-insensitively and return its canonical casing."""
    if _is_blank(value):
        return ValidationResult.fail("Establishment type is required")

    wanted = value.strip().lower()
    for establishment_type in ESTABLISHMENT_TYPES:
        if establishment_type.lower() == wanted:
            return ValidationResult.ok(establishment_type)

    return ValidationResult.fail(
        f"Invalid establishment type. Must be one of: {', '.join(ESTABLISHMENT_TYPES)}"
    )


def validate_opening_date(value: str, today: Optional[date] = None) -> ValidationResult:
    """Validate a YYYY-MM-DD opening date that falls today or later.

    Args:
        value: Raw date string
        today: Reference date, defaults to the local current date
    """
    if _is_blank(value):
        return ValidationResult.fail("Date is required")

    value = value.strip()
    if not DATE_PATTERN.match(value):
        return ValidationResult.fail("Date must be in YYYY-MM-DD format (e.g., 2025-03-15)")

    try:
        parsed = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return ValidationResult.fail("Invalid date")

    if parsed < (today or date.today()):
        return ValidationResult.fail("Opening date must be today or in the future")

    return ValidationResult.ok(value)


def validate_phone(value: str) -> ValidationResult:
    """Strip punctuation from a phone number and require exactly 10 digits."""
    if _is_blank(value):
        return ValidationResult.fail("Phone number is required")

    digits = NON_DIGITS.sub("", value)
    if len(digits) != 10:
        return ValidationResult.fail("Phone number must be 10 digits")

    return ValidationResult.ok(digits)


def validate_email(value: str) -> ValidationResult:
    """Require a local@domain.tld shaped address; normalize to trimmed lowercase."""
    if _is_blank(value):
        return ValidationResult.fail("Email is required")

    trimmed = value.strip()
    if not EMAIL_PATTERN.match(trimmed):
        return ValidationResult.fail("Invalid email format")

    return ValidationResult.ok(trimmed.lower())


def validate_text_field(value: str, label: str) -> ValidationResult:
    """Require non-empty text of at least two characters after trimming."""
    if _is_blank(value):
        return ValidationResult.fail(f"{label} is required")

    trimmed = value.strip()
    if len(trimmed) < 2:
        return ValidationResult.fail(f"{label} must be at least 2 characters")
    if len(trimmed) > MAX_TEXT_LENGTH:
        return ValidationResult.fail(f"{label} must be less than {MAX_TEXT_LENGTH} characters")

    return ValidationResult.ok(trimmed)


def _text(label: str) -> Callable[[str], ValidationResult]:
    return lambda value: validate_text_field(value, label)


# Field name -> rule. Adding a collected field means adding an entry here.
FIELD_VALIDATORS: Dict[str, Callable[[str], ValidationResult]] = {
    "establishmentName": _text("Establishment name"),
    "streetAddress": _text("Street address"),
    "establishmentPhone": validate_phone,
    "establishmentEmail": validate_email,
    "ownerName": _text("Owner name"),
    "ownerPhone": validate_phone,
    "ownerEmail": validate_email,
    "establishmentType": validate_establishment_type,
    "plannedOpeningDate": validate_opening_date,
}


def validate_field(field: str, value: str) -> ValidationResult:
    """Validate and normalize a single application field by name."""
    validator = FIELD_VALIDATORS.get(field)
    if validator is None:
        return ValidationResult.fail(f"Unknown field: {field}")
    return validator(value)
