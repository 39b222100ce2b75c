from unittest.mock import MagicMock, patch

import pytest
from twilio.base.exceptions import TwilioRestException

from permit_intake.config.settings import Settings
from permit_intake.services.telephony import (
    TwilioService,
    build_error_twiml,
    build_session_sms,
    build_stream_twiml,
    to_e164,
)


@pytest.fixture
def twilio_settings():
    return Settings(
        twilio_account_sid="AC123",
        twilio_auth_token="token",
        twilio_phone_number="+15095550000",
    )


@pytest.mark.parametrize(
    "raw,expected",
    [("5095551234", "+15095551234"), ("(509) 555-1234", "+15095551234"), ("1-509-555-1234", "+15095551234"), ("555", None)],
)
def test_to_e164(raw, expected):
    assert to_e164(raw) == expected


def test_stream_twiml_carries_session_parameter():
    twiml = str(build_stream_twiml("wss://example.com/media-stream", "abc-123"))
    assert "<Say" in twiml
    assert '<Stream url="wss://example.com/media-stream">' in twiml
    assert '<Parameter name="sessionId" value="abc-123" />' in twiml


def test_error_twiml_apologizes_and_hangs_up():
    twiml = str(build_error_twiml())
    assert "technical difficulties" in twiml
    assert "<Hangup />" in twiml


def test_session_sms_contains_link_and_number():
    body = build_session_sms("https://example.com/session/abc", "+15095550000")
    assert "https://example.com/session/abc" in body
    assert "+15095550000" in body


@pytest.mark.asyncio
async def test_send_sms_unconfigured_is_a_no_op():
    assert await TwilioService(Settings()).send_sms("+15095551234", "hi") is None


@pytest.mark.asyncio
async def test_send_sms_uses_configured_number(twilio_settings):
    client = MagicMock()
    client.messages.create.return_value = MagicMock(sid="SM123")
    with patch("permit_intake.services.telephony.Client", return_value=client):
        sid = await TwilioService(twilio_settings).send_sms("+15095551234", "hi")

    assert sid == "SM123"
    client.messages.create.assert_called_once_with(to="+15095551234", from_="+15095550000", body="hi")


@pytest.mark.asyncio
async def test_hangup_with_apology_updates_live_call(twilio_settings):
    client = MagicMock()
    with patch("permit_intake.services.telephony.Client", return_value=client):
        assert await TwilioService(twilio_settings).hangup_with_apology("CA123") is True

    client.calls.assert_called_once_with("CA123")
    twiml = client.calls.return_value.update.call_args.kwargs["twiml"]
    assert "<Hangup />" in twiml


@pytest.mark.asyncio
async def test_hangup_failure_is_reported(twilio_settings):
    client = MagicMock()
    client.calls.return_value.update.side_effect = TwilioRestException(404, "/Calls/CA123", "not found")
    with patch("permit_intake.services.telephony.Client", return_value=client):
        assert await TwilioService(twilio_settings).hangup_with_apology("CA123") is False


@pytest.mark.asyncio
async def test_hangup_without_credentials():
    assert await TwilioService(Settings()).hangup_with_apology("CA123") is False
