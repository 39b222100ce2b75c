"""
Scoped, time-limited tokens for mobile clients.

A token only ever grants ``subscribe`` and ``presence`` on the caller's own
``session:<id>`` channel: no publish, and no access to any other session.
"""

import json
import logging
import secrets
import time
from typing import Any, Dict, List, Optional

from ably import AblyRest

from permit_intake.config.constants import (
    LOGGER_NAME,
    TOKEN_CAPABILITY_OPERATIONS,
    TOKEN_CLIENT_ID_PREFIX,
    TOKEN_TTL_MS,
)
from permit_intake.config.settings import get_settings
from permit_intake.models.relay_events import session_channel_name

logger = logging.getLogger(LOGGER_NAME)


def build_capability(session_id: str) -> Dict[str, List[str]]:
    """Capability map for a single session's channel."""
    return {session_channel_name(session_id): list(TOKEN_CAPABILITY_OPERATIONS)}


def capability_allows(capability, channel_name: str, operation: str) -> bool:
    """
    Check whether a capability grants an operation on a channel.

    Args:
        capability: Capability dict, or its JSON encoding as carried in a token request
        channel_name: Channel to check
        operation: e.g. "subscribe", "publish", "presence"
    """
    if isinstance(capability, str):
        capability = json.loads(capability)
    operations = capability.get(channel_name, [])
    return operation in operations or "*" in operations


class TokenIssuer:
    """Issues token requests for the mobile live view."""

    def __init__(self, api_key: Optional[str] = None, ttl_ms: int = TOKEN_TTL_MS):
        self.api_key = api_key
        self.ttl_ms = ttl_ms

    async def issue(self, session_id: str) -> Dict[str, Any]:
        """
        Create a token request scoped to one session.

        Returns:
            {"tokenRequest": {...}, "channelName": "session:<id>"}
        """
        channel_name = session_channel_name(session_id)
        client_id = f"{TOKEN_CLIENT_ID_PREFIX}{session_id}"
        capability = build_capability(session_id)

        if not self.api_key:
            logger.warning("ABLY_API_KEY not set - returning mock token")
            token_request = {
                "keyName": "mock",
                "nonce": secrets.token_hex(8),
                "mac": "mock-mac",
                "timestamp": int(time.time() * 1000),
                "ttl": self.ttl_ms,
                "capability": json.dumps(capability),
                "clientId": client_id,
            }
            return {"tokenRequest": token_request, "channelName": channel_name}

        client = AblyRest(self.api_key)
        try:
            token_request = await client.auth.create_token_request(
                token_params={
                    "client_id": client_id,
                    "capability": capability,
                    "ttl": self.ttl_ms,
                }
            )
        finally:
            await client.close()

        logger.info(f"Issued token request for {channel_name}")
        return {"tokenRequest": token_request.to_dict(), "channelName": channel_name}


def get_token_issuer() -> TokenIssuer:
    """FastAPI dependency returning an issuer bound to the configured key."""
    return TokenIssuer(get_settings().ably_api_key)
