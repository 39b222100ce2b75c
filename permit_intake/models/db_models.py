"""
SQLAlchemy ORM models for the two persisted tables: sessions and applications.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, Date, DateTime, ForeignKey, String, Text

from permit_intake.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class SessionDB(Base):
    """A voice + mobile session and the form data collected so far."""

    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'completed', 'abandoned')", name="sessions_status_check"
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    phone_number = Column(String(20), index=True)
    status = Column(String(20), default="active", nullable=False, index=True)
    channel_name = Column(String(100), nullable=False, index=True)

    # field name -> normalized value, written on every collected or edited field
    form_data = Column(JSON, default=dict, nullable=False)


class ApplicationDB(Base):
    """A finalized permit application. Never updated after insert."""

    __tablename__ = "applications"
    __table_args__ = (
        CheckConstraint(
            "submission_channel IN ('web', 'voice', 'voice_mobile', 'external_api')",
            name="applications_submission_channel_check",
        ),
        CheckConstraint(
            "establishment_type IN ('Restaurant', 'Food Truck', 'Catering', 'Bakery', "
            "'Cafe', 'Bar', 'Food Cart', 'Other')",
            name="applications_establishment_type_check",
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    tracking_id = Column(String(20), unique=True, nullable=False, index=True)
    session_id = Column(
        String(36), ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Establishment
    establishment_name = Column(String(255), nullable=False, index=True)
    street_address = Column(Text, nullable=False)
    establishment_phone = Column(String(20), nullable=False)
    establishment_email = Column(String(255), nullable=False)

    # Owner
    owner_name = Column(String(255), nullable=False)
    owner_phone = Column(String(20), nullable=False)
    owner_email = Column(String(255), nullable=False)

    # Operation
    establishment_type = Column(String(100), nullable=False)
    planned_opening_date = Column(Date, nullable=False)

    submission_channel = Column(String(20), nullable=False, default="web", index=True)
    raw_data = Column(JSON, nullable=True)
