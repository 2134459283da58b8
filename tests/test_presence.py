from app.realtime.presence import PresenceRegistry, SessionInfo


def _session(user_id="u1", sid="sid-1", name="Ada", role="student"):
    return SessionInfo(connection_id=sid, user_id=user_id, display_name=name, role=role)


def test_register_makes_user_online():
    registry = PresenceRegistry()

    registry.register(_session())

    assert registry.is_online("u1")
    assert registry.count() == 1
    assert list(registry.snapshot()) == [{"id": "u1", "name": "Ada", "role": "student"}]


def test_second_connection_supersedes_first():
    registry = PresenceRegistry()
    registry.register(_session(sid="sid-1"))

    registry.register(_session(sid="sid-2"))

    assert registry.count() == 1
    assert registry.get("u1").connection_id == "sid-2"
    assert len([u for u in registry.snapshot() if u["id"] == "u1"]) == 1


def test_unregister_absent_user_is_noop():
    registry = PresenceRegistry()

    assert registry.unregister("nobody") is None
    assert registry.count() == 0


def test_unregister_twice_removes_once():
    registry = PresenceRegistry()
    registry.register(_session())

    assert registry.unregister("u1") is not None
    assert registry.unregister("u1") is None
    assert not registry.is_online("u1")


def test_stale_connection_does_not_evict_newer_one():
    registry = PresenceRegistry()
    registry.register(_session(sid="old"))
    registry.register(_session(sid="new"))

    assert registry.unregister("u1", connection_id="old") is None
    assert registry.is_online("u1")

    assert registry.unregister("u1", connection_id="new").connection_id == "new"
    assert not registry.is_online("u1")


def test_snapshot_is_restartable_and_frozen():
    registry = PresenceRegistry()
    registry.register(_session("u1", "s1"))
    registry.register(_session("u2", "s2", name="Grace", role="teacher"))

    snapshot = registry.snapshot()
    registry.register(_session("u3", "s3", name="Linus"))

    first = list(snapshot)
    second = list(snapshot)
    assert first == second
    assert len(snapshot) == 2
    assert {u["id"] for u in first} == {"u1", "u2"}


def test_online_event_carries_connection_time():
    event = _session().to_online_event()

    assert event["id"] == "u1"
    assert event["role"] == "student"
    assert "connectedAt" in event


def test_clear_drops_everyone():
    registry = PresenceRegistry()
    registry.register(_session("u1", "s1"))
    registry.register(_session("u2", "s2"))

    registry.clear()

    assert registry.count() == 0
