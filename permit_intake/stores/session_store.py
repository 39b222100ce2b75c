"""
Session store: create, read and update voice/mobile session records.

Each session owns a relay channel named ``session:<id>`` and the form data
collected so far. Form data is written through on every field update, so a
restart of the voice gateway mid-call loses nothing that was already
confirmed.
"""

import logging
import uuid
from typing import Dict, Optional

from sqlalchemy.orm import Session

from permit_intake.config.constants import LOGGER_NAME
from permit_intake.models.db_models import SessionDB
from permit_intake.models.relay_events import session_channel_name
from permit_intake.models.schemas import SessionStatus
from permit_intake.stores.base import store_operation

logger = logging.getLogger(LOGGER_NAME)


class SessionStore:
    """CRUD operations on the sessions table."""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self, phone_number: Optional[str] = None, session_id: Optional[str] = None
    ) -> SessionDB:
        """
        Create an active session and its derived channel name.

        Args:
            phone_number: Caller phone number in E.164 format, if known
            session_id: Id to use instead of a freshly generated one

        Returns:
            The persisted session row
        """
        session_id = session_id or str(uuid.uuid4())
        row = SessionDB(
            id=session_id,
            phone_number=phone_number,
            status=SessionStatus.ACTIVE.value,
            channel_name=session_channel_name(session_id),
            form_data={},
        )
        with store_operation(self.db, "Failed to create session"):
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)

        logger.info(f"Session created: {session_id}")
        return row

    def get_session(self, session_id: str) -> Optional[SessionDB]:
        with store_operation(self.db, "Failed to retrieve session"):
            return self.db.query(SessionDB).filter(SessionDB.id == session_id).first()

    def get_session_by_phone(
        self, phone_number: str, status: Optional[SessionStatus] = None
    ) -> Optional[SessionDB]:
        """
        Find the most recently created session for a phone number.

        Args:
            phone_number: Phone number exactly as stored (E.164)
            status: Only consider sessions in this status

        Returns:
            The newest matching session, or None
        """
        with store_operation(self.db, "Failed to retrieve session"):
            query = self.db.query(SessionDB).filter(SessionDB.phone_number == phone_number)
            if status is not None:
                query = query.filter(SessionDB.status == SessionStatus(status).value)
            return query.order_by(SessionDB.created_at.desc()).first()

    def update_session_status(self, session_id: str, status: SessionStatus) -> Optional[SessionDB]:
        status = SessionStatus(status)
        with store_operation(self.db, "Failed to update session"):
            row = self.db.query(SessionDB).filter(SessionDB.id == session_id).first()
            if row is None:
                return None
            row.status = status.value
            self.db.commit()
            self.db.refresh(row)

        logger.info(f"Session {session_id} status -> {status.value}")
        return row

    def update_session_field(self, session_id: str, field: str, value: str) -> Optional[SessionDB]:
        """Persist one normalized field value into the session's form data."""
        with store_operation(self.db, "Failed to update session"):
            row = self.db.query(SessionDB).filter(SessionDB.id == session_id).first()
            if row is None:
                return None
            # Reassign so the JSON column is flagged dirty
            form_data = dict(row.form_data or {})
            form_data[field] = value
            row.form_data = form_data
            self.db.commit()
            self.db.refresh(row)
        return row

    def get_form_data(self, session_id: str) -> Optional[Dict[str, str]]:
        row = self.get_session(session_id)
        if row is None:
            return None
        return dict(row.form_data or {})
