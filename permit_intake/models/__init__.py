"""
Models module for data structures and state in the permit intake service.

Key components:
- schemas: Pydantic models for application payloads, API requests and the
  records returned by the API, plus tracking id generation.
- db_models: SQLAlchemy tables for sessions and applications.
- relay_events: Typed events published on a session's relay channel.
- twilio_schemas: Twilio Media Streams messages, inbound and outbound.
- active_sessions: Registry of sessions bound to a call in progress.
- live_view: State of the mobile live view for one session.

Usage examples:
```python
from permit_intake.models.schemas import ApplicationPayload

payload = ApplicationPayload(**form_data)
print(payload.establishmentType.value)
```
"""
