"""
Pydantic models for permit applications, sessions and the HTTP request bodies.

The batch application schema reuses the single-field rules from
``permit_intake.validation`` so the web form, the external API, the voice
tools and manual edits all normalize values the same way.
"""

import re
import secrets
import string
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from permit_intake.validation import validate_field

TRACKING_ID_PATTERN: Pattern = re.compile(r"^APP-\d{8}-[A-Z0-9]{4}$")
TRACKING_ID_ALPHABET = string.ascii_uppercase + string.digits

# Leading location segments on request validation errors
REQUEST_LOCATIONS = ("body", "query", "path", "header", "cookie")


class EstablishmentType(str, Enum):
    """Kinds of food establishment a permit can be requested for."""

    RESTAURANT = "Restaurant"
    FOOD_TRUCK = "Food Truck"
    CATERING = "Catering"
    BAKERY = "Bakery"
    CAFE = "Cafe"
    BAR = "Bar"
    FOOD_CART = "Food Cart"
    OTHER = "Other"


class SessionStatus(str, Enum):
    """Lifecycle of a voice/mobile session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SubmissionChannel(str, Enum):
    """How an application reached the system."""

    WEB = "web"
    VOICE = "voice"
    VOICE_MOBILE = "voice_mobile"
    EXTERNAL_API = "external_api"


def _normalized(field: str, value: Any) -> str:
    result = validate_field(field, value)
    if not result.is_valid:
        raise ValueError(result.error)
    return result.normalized_value


# Application payloads
class ApplicationPayload(BaseModel):
    """The nine required fields of a permit application."""

    model_config = ConfigDict(extra="ignore")

    establishmentName: str = Field(..., description="Name of the establishment")
    streetAddress: str = Field(..., description="Street address of the establishment")
    establishmentPhone: str = Field(..., description="Establishment phone, 10 digits")
    establishmentEmail: str = Field(..., description="Establishment email, lowercase")
    ownerName: str = Field(..., description="Owner or operator name")
    ownerPhone: str = Field(..., description="Owner phone, 10 digits")
    ownerEmail: str = Field(..., description="Owner email, lowercase")
    establishmentType: EstablishmentType = Field(..., description="Type of establishment")
    plannedOpeningDate: date = Field(..., description="Planned opening date")

    @field_validator(
        "establishmentName",
        "streetAddress",
        "establishmentPhone",
        "establishmentEmail",
        "ownerName",
        "ownerPhone",
        "ownerEmail",
        "establishmentType",
        mode="before",
    )
    @classmethod
    def normalize_field(cls, v, info):
        return _normalized(info.field_name, v)

    @field_validator("plannedOpeningDate", mode="before")
    @classmethod
    def validate_opening_date(cls, v):
        """Accept a YYYY-MM-DD string (or a date) that is today or later."""
        if isinstance(v, date):
            v = v.isoformat()
        return _normalized("plannedOpeningDate", v)


class ExternalApplicationPayload(ApplicationPayload):
    """Application submitted by another system through the external API."""

    externalId: Optional[str] = Field(
        None, description="External system's unique identifier for this application"
    )
    sourceSystem: Optional[str] = Field(
        None, description="Name of the external system submitting the application"
    )
    submissionNotes: Optional[str] = Field(
        None, description="Additional notes from the external system"
    )
    submissionChannel: Optional[Literal["external_api"]] = None


# Request bodies
class CreateSessionRequest(BaseModel):
    phoneNumber: Optional[str] = None


class FieldUpdateRequest(BaseModel):
    """A single field edit coming from the mobile view."""

    field: str = Field(..., min_length=1, description="Application field name")
    value: Any = Field(None, description="Raw value entered by the user")

    @field_validator("value")
    @classmethod
    def coerce_value(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class TokenRequestBody(BaseModel):
    sessionId: str

    @field_validator("sessionId")
    @classmethod
    def validate_session_id(cls, v):
        try:
            uuid.UUID(v)
        except (ValueError, AttributeError, TypeError):
            raise ValueError("Invalid session ID")
        return v


class StartVoiceRequest(BaseModel):
    phoneNumber: Optional[str] = None


class PasswordCheckRequest(BaseModel):
    password: Optional[str] = None


# Records
class SessionRecord(BaseModel):
    """Session as returned by the API."""

    id: str
    channelName: str
    status: SessionStatus
    phoneNumber: Optional[str] = None
    createdAt: datetime
    updatedAt: Optional[datetime] = None
    formData: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_db(cls, row) -> "SessionRecord":
        return cls(
            id=row.id,
            channelName=row.channel_name,
            status=row.status,
            phoneNumber=row.phone_number,
            createdAt=row.created_at,
            updatedAt=row.updated_at,
            formData=dict(row.form_data or {}),
        )


class ApplicationRecord(BaseModel):
    """Finalized permit application as returned by the API."""

    id: str
    trackingId: str
    sessionId: Optional[str] = None
    establishmentName: str
    streetAddress: str
    establishmentPhone: str
    establishmentEmail: str
    ownerName: str
    ownerPhone: str
    ownerEmail: str
    establishmentType: str
    plannedOpeningDate: date
    submissionChannel: SubmissionChannel
    createdAt: datetime
    submittedAt: Optional[datetime] = None
    rawData: Optional[Dict[str, Any]] = None

    @classmethod
    def from_db(cls, row) -> "ApplicationRecord":
        return cls(
            id=row.id,
            trackingId=row.tracking_id,
            sessionId=row.session_id,
            establishmentName=row.establishment_name,
            streetAddress=row.street_address,
            establishmentPhone=row.establishment_phone,
            establishmentEmail=row.establishment_email,
            ownerName=row.owner_name,
            ownerPhone=row.owner_phone,
            ownerEmail=row.owner_email,
            establishmentType=row.establishment_type,
            plannedOpeningDate=row.planned_opening_date,
            submissionChannel=row.submission_channel,
            createdAt=row.created_at,
            submittedAt=row.submitted_at,
            rawData=row.raw_data,
        )


# Helpers
def generate_tracking_id(now: Optional[datetime] = None) -> str:
    """Generate a tracking id of the form APP-YYYYMMDD-XXXX.

    The date segment is the local creation date; the suffix is four random
    uppercase letters or digits.
    """
    now = now or datetime.now()
    suffix = "".join(secrets.choice(TRACKING_ID_ALPHABET) for _ in range(4))
    return f"APP-{now:%Y%m%d}-{suffix}"


def format_phone_number(phone: str) -> str:
    """Format ten digits as (XXX) XXX-XXXX; anything else is returned unchanged."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) != 10:
        return phone
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def flatten_validation_errors(errors) -> Dict[str, Any]:
    """Group pydantic errors into ``{"fieldErrors": {...}, "formErrors": [...]}``.

    Accepts a ``ValidationError`` or the list returned by ``.errors()``
    (request validation errors carry a leading location such as ``"body"``).
    """
    if isinstance(errors, ValidationError):
        errors = errors.errors()

    field_errors: Dict[str, List[str]] = {}
    form_errors: List[str] = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in REQUEST_LOCATIONS:
            loc = loc[1:]
        if error.get("type") == "missing":
            message = "This field is required"
        elif error.get("type") == "value_error" and error.get("ctx", {}).get("error"):
            message = str(error["ctx"]["error"])
        else:
            message = error.get("msg", "Invalid value")

        if loc and isinstance(loc[0], str):
            field_errors.setdefault(loc[0], []).append(message)
        else:
            form_errors.append(message)

    return {"fieldErrors": field_errors, "formErrors": form_errors}
