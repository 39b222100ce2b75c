"""
Persistence layer for sessions and permit applications.

Both stores wrap a SQLAlchemy ``Session``. Lookups return ``None`` when a
record does not exist; any database failure is logged with its cause and
re-raised as ``StoreError`` carrying a generic "Failed to ..." message.
Nothing at this layer retries.

```python
from permit_intake.database import SessionLocal
from permit_intake.stores import ApplicationStore, SessionStore

db = SessionLocal()
session = SessionStore(db).create_session("+15095551234")
records, total = ApplicationStore(db).get_all_applications(limit=10)
```
"""

from permit_intake.stores.application_store import ApplicationStore
from permit_intake.stores.session_store import SessionStore

__all__ = ["ApplicationStore", "SessionStore"]
