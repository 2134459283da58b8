import pytest

from app.realtime.dispatcher import BroadcastDispatcher
from app.realtime.rooms import RoomRouter, room_for_quiz, room_for_role, room_for_user


@pytest.fixture
def populated(sio):
    """admin-1 and teacher-1 are supervisors, s-1 and s-2 are students."""
    for sid, role, user_id in [
        ("admin-1", "admin", "a1"),
        ("teacher-1", "teacher", "t1"),
        ("s-1", "student", "u1"),
        ("s-2", "student", "u2"),
    ]:
        sio.sessions[sid] = {"user_id": user_id, "role": role}
        sio.rooms[room_for_role(role)].add(sid)
        sio.rooms[room_for_user(user_id)].add(sid)
    return sio


def test_room_names():
    assert room_for_role("Teacher") == "role:teacher"
    assert room_for_user("42") == "user:42"
    assert room_for_quiz("q9") == "quiz:q9"


@pytest.mark.asyncio
async def test_identity_rooms_joined_from_identity(sio):
    router = RoomRouter(sio)

    await router.join_identity_rooms("sid-1", "u1", "student")

    assert "sid-1" in sio.rooms["role:student"]
    assert "sid-1" in sio.rooms["user:u1"]


@pytest.mark.asyncio
async def test_join_and_leave_quiz_are_idempotent(sio):
    router = RoomRouter(sio)

    await router.join_quiz("sid-1", "quiz-1")
    await router.join_quiz("sid-1", "quiz-1")
    assert sio.rooms["quiz:quiz-1"] == {"sid-1"}

    await router.leave_quiz("sid-1", "quiz-1")
    await router.leave_quiz("sid-1", "quiz-1")
    assert sio.rooms["quiz:quiz-1"] == set()


@pytest.mark.asyncio
async def test_to_user_reaches_only_that_user(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.to_user("u1", "new_notification", {"id": 1})

    assert populated.recipients(populated.emitted[-1]) == {"s-1"}


@pytest.mark.asyncio
async def test_to_role(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.to_role("student", "dashboard_update", {})

    assert populated.recipients(populated.emitted[-1]) == {"s-1", "s-2"}


@pytest.mark.asyncio
async def test_quiz_supervisors_are_admins_and_teachers(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.to_quiz_supervisors("quiz-1", "student_progress", {"quizId": "quiz-1"})

    emitted = populated.emitted[-1]
    assert emitted.event == "student_progress"
    assert populated.recipients(emitted) == {"admin-1", "teacher-1"}


@pytest.mark.asyncio
async def test_supervisor_broadcast_can_skip_sender(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.to_supervisors("user_typing", {}, skip_sid="teacher-1")

    assert populated.recipients(populated.emitted[-1]) == {"admin-1"}


@pytest.mark.asyncio
async def test_to_all(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.to_all("user_offline", "u1")

    assert populated.recipients(populated.emitted[-1]) == {"admin-1", "teacher-1", "s-1", "s-2"}


@pytest.mark.asyncio
async def test_quiz_lifecycle_events_go_to_quiz_room(populated):
    populated.rooms["quiz:quiz-1"].add("s-2")
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.notify_quiz_started("quiz-1", {"quizId": "quiz-1"})
    await dispatcher.notify_quiz_updated("quiz-1", {"quizId": "quiz-1"})
    await dispatcher.notify_quiz_ended("quiz-1", {"quizId": "quiz-1"})

    assert [e.event for e in populated.emitted] == ["quiz_started", "quiz_updated", "quiz_ended"]
    assert all(populated.recipients(e) == {"s-2"} for e in populated.emitted)


@pytest.mark.asyncio
async def test_notifications_and_admin_helpers(populated):
    dispatcher = BroadcastDispatcher(populated)

    await dispatcher.notify_user("u2", {"title": "Graded"})
    await dispatcher.notify_role("teacher", {"title": "New student"})
    await dispatcher.send_dashboard_update({"onlineUsers": 4})
    await dispatcher.send_announcement("Maintenance at noon", "warning")

    notify_user, notify_role, dashboard, announcement = populated.emitted
    assert notify_user.event == notify_role.event == "new_notification"
    assert populated.recipients(notify_user) == {"s-2"}
    assert populated.recipients(notify_role) == {"teacher-1"}
    assert dashboard.event == "dashboard_update"
    assert populated.recipients(dashboard) == {"admin-1"}
    assert announcement.event == "system_announcement"
    assert announcement.data["message"] == "Maintenance at noon"
    assert announcement.data["type"] == "warning"
    assert announcement.to is None


def test_supervisor_roles_are_configurable(sio):
    dispatcher = BroadcastDispatcher(sio, supervisor_roles=["proctor"])

    assert dispatcher.supervisor_rooms == ["role:proctor"]
