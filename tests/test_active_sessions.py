from permit_intake.models.active_sessions import ActiveSessionRegistry


def test_add_and_get_session():
    registry = ActiveSessionRegistry()
    entry = registry.add_session("s1", "session:s1", call_sid="CA1", form_data={"ownerName": "Joe"})

    assert registry.get_session("s1") is entry
    assert entry.form_data == {"ownerName": "Joe"}
    assert registry.get_session("missing") is None


def test_set_field_only_for_registered_sessions():
    registry = ActiveSessionRegistry()
    registry.add_session("s1", "session:s1")

    assert registry.set_field("s1", "ownerName", "Joe") is True
    assert registry.set_field("s2", "ownerName", "Joe") is False
    assert registry.get_session("s1").form_data == {"ownerName": "Joe"}


def test_remove_session_is_idempotent():
    registry = ActiveSessionRegistry()
    registry.add_session("s1", "session:s1")
    registry.remove_session("s1")
    registry.remove_session("s1")
    assert registry.get_all_sessions() == {}


def test_evict_expired_entries():
    registry = ActiveSessionRegistry(ttl_seconds=60)
    stale = registry.add_session("stale", "session:stale")
    fresh = registry.add_session("fresh", "session:fresh")
    stale.last_touched -= 120

    assert registry.evict_expired(now=fresh.last_touched) == 1
    assert registry.get_session("stale") is None
    assert registry.get_session("fresh") is fresh


def test_touch_keeps_entry_alive():
    registry = ActiveSessionRegistry(ttl_seconds=60)
    entry = registry.add_session("s1", "session:s1")
    entry.last_touched -= 120
    registry.set_field("s1", "ownerName", "Joe")

    assert registry.evict_expired() == 0
