"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "permit_intake"

# Default OpenAI model and voice for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_VOICE = "alloy"

# Twilio Media Streams carry G.711 u-law; OpenAI accepts it as-is
REALTIME_AUDIO_FORMAT = "g711_ulaw"

# Relay channel naming
SESSION_CHANNEL_PREFIX = "session:"

# Relay event names
EVENT_FIELD_UPDATE = "field-update"
EVENT_SESSION_COMPLETE = "session-complete"
EVENT_SESSION_ERROR = "session-error"

# Source tag for updates made by a person from the mobile view
SOURCE_MANUAL = "manual"

# Scoped client tokens
TOKEN_TTL_MS = 60 * 60 * 1000  # 1 hour
TOKEN_CAPABILITY_OPERATIONS = ["subscribe", "presence"]
TOKEN_CLIENT_ID_PREFIX = "mobile-"

# Twilio Media Streams event types
STREAM_EVENT_CONNECTED = "connected"
STREAM_EVENT_START = "start"
STREAM_EVENT_MEDIA = "media"
STREAM_EVENT_MARK = "mark"
STREAM_EVENT_STOP = "stop"

# Custom stream parameter carrying the session id
STREAM_PARAM_SESSION_ID = "sessionId"

# Application fields collected by every channel
APPLICATION_FIELDS = [
    "establishmentName",
    "streetAddress",
    "establishmentPhone",
    "establishmentEmail",
    "ownerName",
    "ownerPhone",
    "ownerEmail",
    "establishmentType",
    "plannedOpeningDate",
]

ESTABLISHMENT_TYPES = [
    "Restaurant",
    "Food Truck",
    "Catering",
    "Bakery",
    "Cafe",
    "Bar",
    "Food Cart",
    "Other",
]

# Listing defaults for the admin view
DEFAULT_PAGE_LIMIT = 50
MAX_TEXT_LENGTH = 255

# Relay subscriber queue bound
SUBSCRIBER_QUEUE_SIZE = 100
