"""
Pydantic models for Twilio Media Streams WebSocket messages.

Twilio sends ``connected`` once, then ``start`` carrying the stream/call ids
and any ``<Parameter>`` values from the TwiML, then a run of ``media`` frames
and finally ``stop``. Outbound, the server sends ``media`` frames with
base64 audio and ``clear`` to flush queued playback on barge-in.
"""

from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field


class StreamStartDetails(BaseModel):
    streamSid: str = Field(..., description="Twilio stream identifier")
    callSid: Optional[str] = Field(None, description="Twilio call identifier")
    accountSid: Optional[str] = None
    customParameters: Dict[str, str] = Field(default_factory=dict)


class StreamStartMessage(BaseModel):
    """Model for the start message; carries the session id custom parameter."""

    event: Literal["start"]
    streamSid: Optional[str] = None
    start: StreamStartDetails


class MediaPayload(BaseModel):
    payload: str = Field(..., description="Base64-encoded G.711 u-law audio")
    track: Optional[str] = None
    timestamp: Optional[str] = None


class StreamMediaMessage(BaseModel):
    event: Literal["media"]
    streamSid: Optional[str] = None
    media: MediaPayload


class StreamStopMessage(BaseModel):
    event: Literal["stop"]
    streamSid: Optional[str] = None


class OutboundMediaMessage(BaseModel):
    """Audio sent back to the caller."""

    event: Literal["media"] = "media"
    streamSid: str
    media: Dict[str, str]

    @classmethod
    def from_delta(cls, stream_sid: str, audio_b64: str) -> "OutboundMediaMessage":
        return cls(streamSid=stream_sid, media={"payload": audio_b64})


class ClearMessage(BaseModel):
    event: Literal["clear"] = "clear"
    streamSid: str
