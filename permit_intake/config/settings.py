"""
Environment-driven settings.

Values are read from the process environment every time ``get_settings`` is
called, so a ``.env`` file loaded at startup and variables patched in tests
are both picked up without a restart of the module.
"""

import os
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import BaseModel

from permit_intake.config.constants import DEFAULT_REALTIME_MODEL, DEFAULT_REALTIME_VOICE

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


class Settings(BaseModel):
    """Runtime configuration for the web application and the voice gateway."""

    openai_api_key: Optional[str] = None
    openai_realtime_model: str = DEFAULT_REALTIME_MODEL
    openai_realtime_voice: str = DEFAULT_REALTIME_VOICE

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    ably_api_key: Optional[str] = None
    braintrust_api_key: Optional[str] = None

    page_password: Optional[str] = None
    public_base_url: Optional[str] = None

    database_url: str = "sqlite:///./permits.db"
    session_ttl_seconds: int = 3600

    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value if value else None


def get_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    return Settings(
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_realtime_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
        openai_realtime_voice=os.getenv("OPENAI_REALTIME_VOICE", DEFAULT_REALTIME_VOICE),
        twilio_account_sid=_env("TWILIO_ACCOUNT_SID"),
        twilio_auth_token=_env("TWILIO_AUTH_TOKEN"),
        twilio_phone_number=_env("TWILIO_PHONE_NUMBER"),
        ably_api_key=_env("ABLY_API_KEY"),
        braintrust_api_key=_env("BRAINTRUST_API_KEY"),
        page_password=_env("PAGE_PASSWORD"),
        public_base_url=_env("PUBLIC_BASE_URL"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./permits.db"),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", "3600")),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
