import time
import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from permit_intake.exceptions import StoreError
from permit_intake.models.schemas import SessionStatus
from permit_intake.stores import SessionStore


@pytest.fixture
def store(db):
    return SessionStore(db)


def test_create_session_derives_channel_name(store):
    row = store.create_session("+15095551234")
    assert uuid.UUID(row.id)
    assert row.channel_name == f"session:{row.id}"
    assert row.status == SessionStatus.ACTIVE.value
    assert row.phone_number == "+15095551234"
    assert row.form_data == {}


def test_create_session_with_explicit_id(store):
    session_id = str(uuid.uuid4())
    row = store.create_session(session_id=session_id)
    assert row.id == session_id
    assert store.get_session(session_id).channel_name == f"session:{session_id}"


def test_get_session_missing_returns_none(store):
    assert store.get_session(str(uuid.uuid4())) is None


def test_get_session_by_phone_returns_most_recent(store):
    first = store.create_session("+15095551234")
    time.sleep(0.01)
    second = store.create_session("+15095551234")
    store.create_session("+15095550000")

    assert store.get_session_by_phone("+15095551234").id == second.id
    store.update_session_status(second.id, SessionStatus.COMPLETED)
    assert store.get_session_by_phone("+15095551234", status=SessionStatus.ACTIVE).id == first.id


def test_get_session_by_phone_unknown_number(store):
    assert store.get_session_by_phone("+15095559999") is None


def test_update_session_status(store):
    row = store.create_session()
    updated = store.update_session_status(row.id, SessionStatus.COMPLETED)
    assert updated.status == "completed"
    assert store.update_session_status(str(uuid.uuid4()), SessionStatus.COMPLETED) is None


def test_update_session_field_persists_form_data(store, session_factory):
    row = store.create_session()
    store.update_session_field(row.id, "establishmentName", "Joe's Pizza")
    store.update_session_field(row.id, "ownerName", "Joe Smith")
    store.update_session_field(row.id, "establishmentName", "Joe's Pizzeria")

    with session_factory() as other:
        assert SessionStore(other).get_form_data(row.id) == {
            "establishmentName": "Joe's Pizzeria",
            "ownerName": "Joe Smith",
        }


def test_get_form_data_missing_session(store):
    assert store.get_form_data(str(uuid.uuid4())) is None


def test_database_failure_raises_store_error():
    db = MagicMock()
    db.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    with pytest.raises(StoreError) as exc_info:
        SessionStore(db).get_session("abc")
    assert exc_info.value.message == "Failed to retrieve session"
    assert isinstance(exc_info.value.cause, OperationalError)
    db.rollback.assert_called_once()
