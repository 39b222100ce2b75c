"""
Application store: create, read and list finalized permit applications.

Tracking ids are always generated here, at record-creation time, whichever
channel the application came through.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from permit_intake.config.constants import DEFAULT_PAGE_LIMIT, LOGGER_NAME
from permit_intake.exceptions import ConflictError, NotFoundError
from permit_intake.models.db_models import ApplicationDB, SessionDB
from permit_intake.models.schemas import (
    ApplicationPayload,
    SessionStatus,
    SubmissionChannel,
    generate_tracking_id,
)
from permit_intake.stores.base import store_operation

logger = logging.getLogger(LOGGER_NAME)

# Regenerations allowed when a random suffix collides with an existing id
MAX_TRACKING_ID_ATTEMPTS = 5

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class ApplicationStore:
    """CRUD operations on the applications table."""

    def __init__(self, db: Session):
        self.db = db

    def tracking_id_exists(self, tracking_id: str) -> bool:
        with store_operation(self.db, "Failed to check tracking ID"):
            return (
                self.db.query(ApplicationDB.id)
                .filter(ApplicationDB.tracking_id == tracking_id)
                .first()
                is not None
            )

    def _new_tracking_id(self) -> str:
        tracking_id = generate_tracking_id()
        for _ in range(MAX_TRACKING_ID_ATTEMPTS - 1):
            if not self.tracking_id_exists(tracking_id):
                break
            logger.warning(f"Tracking ID collision on {tracking_id}, regenerating")
            tracking_id = generate_tracking_id()
        return tracking_id

    def create_application(
        self,
        payload: ApplicationPayload,
        channel: SubmissionChannel = SubmissionChannel.WEB,
        session_id: Optional[str] = None,
        raw_data: Optional[Dict[str, Any]] = None,
    ) -> ApplicationDB:
        """
        Persist a validated application with a new tracking id.

        Args:
            payload: Validated and normalized application fields
            channel: Submission channel, recorded unchanged
            session_id: Originating session, if any
            raw_data: Snapshot of the full input for audit; defaults to the payload

        Returns:
            The persisted application row
        """
        channel = SubmissionChannel(channel)
        with store_operation(self.db, "Failed to create application"):
            row = self._new_row(payload, channel, session_id, raw_data)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)

        logger.info(f"Application created: {row.tracking_id} via {channel.value}")
        return row

    def complete_session(
        self,
        session_id: str,
        payload: ApplicationPayload,
        channel: SubmissionChannel,
        raw_data: Optional[Dict[str, Any]] = None,
    ) -> ApplicationDB:
        """
        Create a session's application and mark the session completed.

        Both writes commit together; a failure leaves the session active
        with no application.

        Raises:
            NotFoundError: The session does not exist
            ConflictError: The session is no longer active
            StoreError: The transaction failed
        """
        channel = SubmissionChannel(channel)
        with store_operation(self.db, "Failed to complete application"):
            session = self.db.query(SessionDB).filter(SessionDB.id == session_id).first()
            if session is None:
                raise NotFoundError("Session not found")
            if session.status != SessionStatus.ACTIVE.value:
                raise ConflictError(f"Session is {session.status}")

            row = self._new_row(payload, channel, session_id, raw_data)
            self.db.add(row)
            session.status = SessionStatus.COMPLETED.value
            self.db.commit()
            self.db.refresh(row)

        logger.info(f"Session {session_id} completed as {row.tracking_id} via {channel.value}")
        return row

    def _new_row(
        self,
        payload: ApplicationPayload,
        channel: SubmissionChannel,
        session_id: Optional[str],
        raw_data: Optional[Dict[str, Any]],
    ) -> ApplicationDB:
        now = datetime.now(timezone.utc)
        if raw_data is None:
            raw_data = payload.model_dump(mode="json")
        return ApplicationDB(
            tracking_id=self._new_tracking_id(),
            session_id=session_id,
            created_at=now,
            submitted_at=now,
            updated_at=now,
            establishment_name=payload.establishmentName,
            street_address=payload.streetAddress,
            establishment_phone=payload.establishmentPhone,
            establishment_email=payload.establishmentEmail,
            owner_name=payload.ownerName,
            owner_phone=payload.ownerPhone,
            owner_email=payload.ownerEmail,
            establishment_type=payload.establishmentType.value,
            planned_opening_date=payload.plannedOpeningDate,
            submission_channel=channel.value,
            raw_data=raw_data,
        )

    def get_application(self, application_id: str) -> Optional[ApplicationDB]:
        with store_operation(self.db, "Failed to retrieve application"):
            return self.db.query(ApplicationDB).filter(ApplicationDB.id == application_id).first()

    def get_application_by_tracking_id(self, tracking_id: str) -> Optional[ApplicationDB]:
        with store_operation(self.db, "Failed to retrieve application"):
            return (
                self.db.query(ApplicationDB)
                .filter(ApplicationDB.tracking_id == tracking_id)
                .first()
            )

    def get_all_applications(
        self,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
        establishment_name: Optional[str] = None,
        submission_channel: Optional[str] = None,
    ) -> Tuple[List[ApplicationDB], int]:
        """
        List applications newest first.

        Args:
            limit: Page size
            offset: Rows to skip
            establishment_name: Case-insensitive substring filter
            submission_channel: Exact channel filter

        Returns:
            (page of rows, total rows matching the filters)
        """
        with store_operation(self.db, "Failed to retrieve applications"):
            query = self.db.query(ApplicationDB)
            if establishment_name:
                pattern = f"%{escape_like(establishment_name)}%"
                query = query.filter(
                    ApplicationDB.establishment_name.ilike(pattern, escape=LIKE_ESCAPE)
                )
            if submission_channel:
                query = query.filter(ApplicationDB.submission_channel == submission_channel)

            total = query.count()
            rows = (
                query.order_by(ApplicationDB.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        return rows, total

    def get_applications_by_session(self, session_id: str) -> List[ApplicationDB]:
        with store_operation(self.db, "Failed to retrieve applications"):
            return (
                self.db.query(ApplicationDB)
                .filter(ApplicationDB.session_id == session_id)
                .order_by(ApplicationDB.created_at.desc())
                .all()
            )
