import json
from unittest.mock import patch

import pytest

from conftest import future_date
from permit_intake.bot.tools import TOOL_DEFINITIONS, VoiceToolBridge
from permit_intake.exceptions import StoreError
from permit_intake.models.active_sessions import ActiveSessionRegistry
from permit_intake.models.schemas import TRACKING_ID_PATTERN, ApplicationPayload, SubmissionChannel
from permit_intake.stores import ApplicationStore, SessionStore

VALID_FIELDS = {
    "establishmentName": "Joe's Pizza",
    "streetAddress": "123 Main St",
    "establishmentPhone": "509 555 1234",
    "establishmentEmail": "INFO@joespizza.com",
    "ownerName": "Joe Smith",
    "ownerPhone": "5095559876",
    "ownerEmail": "joe@example.com",
    "establishmentType": "food truck",
}


@pytest.fixture
def session_id(db):
    return SessionStore(db).create_session("+15095551234").id


@pytest.fixture
def registry(session_id):
    registry = ActiveSessionRegistry()
    registry.add_session(session_id, f"session:{session_id}")
    return registry


@pytest.fixture
def bridge(session_id, session_factory, relay_publisher, registry):
    return VoiceToolBridge(session_id, session_factory, relay_publisher, registry)


async def fill_form(bridge):
    for field, value in {**VALID_FIELDS, "plannedOpeningDate": future_date()}.items():
        await bridge.update_field(field, value)


def test_tool_definitions_cover_both_tools():
    names = [tool["name"] for tool in TOOL_DEFINITIONS]
    assert names == ["updateField", "submitApplication"]
    field_enum = TOOL_DEFINITIONS[0]["parameters"]["properties"]["field"]["enum"]
    assert len(field_enum) == 9


@pytest.mark.asyncio
async def test_update_field_persists_and_publishes(bridge, session_id, session_factory, relay_publisher, registry):
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    output = await bridge.update_field("establishmentEmail", "INFO@JoesPizza.com")

    assert output == "Updated establishmentEmail to info@joespizza.com."
    message = queue.get_nowait()
    assert message["name"] == "field-update"
    assert message["data"]["value"] == "info@joespizza.com"
    assert "source" not in message["data"]
    assert registry.get_session(session_id).form_data == {"establishmentEmail": "info@joespizza.com"}
    with session_factory() as db:
        assert SessionStore(db).get_form_data(session_id) == {"establishmentEmail": "info@joespizza.com"}


@pytest.mark.asyncio
async def test_invalid_value_returns_error_without_publishing(bridge, session_id, relay_publisher):
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    output = await bridge.update_field("ownerPhone", "555-1234")

    assert output.startswith("Error: Phone number must be 10 digits")
    assert queue.empty()


@pytest.mark.asyncio
async def test_store_failure_is_reported_to_agent(bridge):
    with patch(
        "permit_intake.bot.tools.SessionStore.update_session_field",
        side_effect=StoreError("Failed to update session"),
    ):
        output = await bridge.update_field("ownerName", "Joe Smith")
    assert output == "Error: ownerName could not be saved. Please try again."


@pytest.mark.asyncio
async def test_submit_with_missing_fields_lists_them(bridge, session_id, relay_publisher):
    await bridge.update_field("establishmentName", "Joe's Pizza")
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    output = await bridge.submit_application()

    assert output.startswith("The application cannot be submitted yet.")
    assert "ownerEmail: This field is required" in output
    assert queue.empty()
    assert not bridge.completed


@pytest.mark.asyncio
async def test_submit_creates_voice_application(bridge, session_id, session_factory, relay_publisher, registry):
    await fill_form(bridge)
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    output = await bridge.submit_application(trackingId="APP-19990101-FAKE")

    assert bridge.completed
    assert TRACKING_ID_PATTERN.match(bridge.tracking_id)
    assert bridge.tracking_id != "APP-19990101-FAKE"
    assert bridge.tracking_id in output

    message = queue.get_nowait()
    assert message["name"] == "session-complete"
    assert message["data"]["trackingId"] == bridge.tracking_id
    assert registry.get_session(session_id) is None

    with session_factory() as db:
        [application] = ApplicationStore(db).get_applications_by_session(session_id)
        assert application.tracking_id == bridge.tracking_id
        assert application.submission_channel == "voice"
        assert application.establishment_type == "Food Truck"
        assert SessionStore(db).get_session(session_id).status == "completed"


@pytest.mark.asyncio
async def test_no_changes_after_submission(bridge):
    await fill_form(bridge)
    await bridge.submit_application()

    assert "already been submitted" in await bridge.update_field("ownerName", "Jane Doe")
    assert bridge.tracking_id in await bridge.submit_application()


@pytest.mark.asyncio
async def test_dispatch_routes_json_arguments(bridge):
    output = await bridge.dispatch("updateField", json.dumps({"field": "ownerName", "value": "Joe Smith"}))
    assert output == "Updated ownerName to Joe Smith."


@pytest.mark.asyncio
async def test_dispatch_unknown_tool_and_bad_arguments(bridge):
    assert await bridge.dispatch("deleteEverything", "{}") == "Unknown tool: deleteEverything"
    assert "not valid JSON" in await bridge.dispatch("updateField", "{oops")


@pytest.mark.asyncio
async def test_tools_refuse_session_completed_elsewhere(bridge, session_id, session_factory, relay_publisher):
    await fill_form(bridge)
    with session_factory() as db:
        form_data = SessionStore(db).get_form_data(session_id)
        ApplicationStore(db).complete_session(
            session_id, ApplicationPayload(**form_data), channel=SubmissionChannel.VOICE_MOBILE
        )
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    assert "already been submitted" in await bridge.update_field("ownerName", "Someone Else")
    assert "already been submitted" in await bridge.submit_application()

    assert queue.empty()
    assert not bridge.completed
    with session_factory() as db:
        assert SessionStore(db).get_form_data(session_id)["ownerName"] == "Joe Smith"
        [application] = ApplicationStore(db).get_applications_by_session(session_id)
        assert application.submission_channel == "voice_mobile"


@pytest.mark.asyncio
async def test_submit_store_failure_publishes_session_error(bridge, session_id, relay_publisher):
    await fill_form(bridge)
    queue = relay_publisher.hub.subscribe(f"session:{session_id}")

    with patch(
        "permit_intake.bot.tools.ApplicationStore.complete_session",
        side_effect=StoreError("Failed to complete application"),
    ):
        output = await bridge.submit_application()

    assert output.startswith("Error: the application could not be submitted")
    assert not bridge.completed
    assert queue.get_nowait()["name"] == "session-error"
