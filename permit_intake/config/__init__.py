"""
Configuration module for the permit intake service.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants such as relay event names, channel naming,
  token lifetimes, Twilio stream event types and the collected application fields.
- logging_config: Console and rotating-file logging shared by every module.
- settings: Environment-driven settings (API keys, database URL, public base URL).

Usage examples:
```python
from permit_intake.config.constants import LOGGER_NAME, EVENT_FIELD_UPDATE
from permit_intake.config.logging_config import configure_logging
from permit_intake.config.settings import get_settings

logger = configure_logging()
settings = get_settings()
logger.info(f"Ably configured: {bool(settings.ably_api_key)}")
```
"""

# Config module initialization
