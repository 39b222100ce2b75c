"""
Twilio integration: TwiML for inbound calls, SMS with the session link, and
ending a live call with a spoken apology when the voice session cannot start.
"""

import asyncio
import logging
import re
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client
from twilio.twiml.voice_response import Connect, VoiceResponse

from permit_intake.config.constants import LOGGER_NAME, STREAM_PARAM_SESSION_ID
from permit_intake.config.settings import Settings, get_settings

logger = logging.getLogger(LOGGER_NAME)

TWIML_VOICE = "Polly.Joanna"

GREETING = (
    "Hello! Thank you for calling the Chelan-Douglas Health District. "
    "I'm here to help you complete your food establishment permit application by voice. "
    "I'll ask you a few questions about your establishment, and you'll see the form "
    "populate in real-time on your phone. Let's get started!"
)

APOLOGY = (
    "We're sorry, but we're experiencing technical difficulties. "
    "Please try again later or visit our website to submit your application."
)


def to_e164(phone: str) -> Optional[str]:
    """Convert a 10-digit US number (or 1 + 10 digits) to +1XXXXXXXXXX."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return None


def build_stream_twiml(stream_url: str, session_id: str) -> VoiceResponse:
    """Greet the caller, then open a media stream tagged with the session id."""
    response = VoiceResponse()
    response.say(GREETING, voice=TWIML_VOICE)
    connect = Connect()
    stream = connect.stream(url=stream_url)
    stream.parameter(name=STREAM_PARAM_SESSION_ID, value=session_id)
    response.append(connect)
    return response


def build_error_twiml() -> VoiceResponse:
    response = VoiceResponse()
    response.say(APOLOGY, voice=TWIML_VOICE)
    response.hangup()
    return response


def build_session_sms(session_url: str, callback_number: str) -> str:
    return (
        "Your food permit application session is ready!\n\n"
        f"1. Open this link on your phone: {session_url}\n\n"
        f"2. Then call {callback_number} to complete your application by voice.\n\n"
        "You'll see the form fill out in real-time as you speak!"
    )


class TwilioService:
    """
    Thin wrapper over the Twilio REST client.

    The REST client is synchronous, so calls run in a worker thread. Without
    credentials every operation logs what it would have done and returns.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[Client] = None

    @property
    def configured(self) -> bool:
        return self.settings.twilio_configured

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    async def send_sms(self, to: str, body: str) -> Optional[str]:
        """
        Send an SMS from the configured Twilio number.

        Args:
            to: Destination in E.164 format
            body: Message text

        Returns:
            The message SID, or None when Twilio is not configured

        Raises:
            TwilioRestException: if Twilio rejects the message
        """
        if not self.configured:
            logger.warning("Twilio credentials not configured - SMS not sent")
            logger.info(f"Would have sent SMS to {to}: {body}")
            return None

        message = await asyncio.to_thread(
            self._get_client().messages.create,
            to=to,
            from_=self.settings.twilio_phone_number,
            body=body,
        )
        logger.info(f"SMS sent successfully. SID: {message.sid}")
        return message.sid

    async def hangup_with_apology(self, call_sid: Optional[str]) -> bool:
        """Redirect a live call to the apology TwiML, which ends the call."""
        if not self.configured or not call_sid:
            logger.warning(f"Cannot end call {call_sid} with apology - Twilio not configured")
            return False

        try:
            await asyncio.to_thread(
                self._get_client().calls(call_sid).update, twiml=str(build_error_twiml())
            )
            logger.info(f"Ended call {call_sid} with apology")
            return True
        except TwilioRestException as e:
            logger.error(f"Failed to end call {call_sid}: {e}")
            return False


def get_twilio_service() -> TwilioService:
    """FastAPI dependency returning a service bound to the current settings."""
    return TwilioService(get_settings())
