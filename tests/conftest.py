import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import Quiz, QuizAttempt, User
from app.realtime.server import create_gateway
from app.services.auth_service import create_access_token
from app.utils.cache import CacheService


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

@dataclass
class Emitted:
    event: str
    data: Any
    to: Any
    skip_sid: Optional[str]


class FakeSocketServer:
    """Records what the gateway asks a python-socketio AsyncServer to do."""

    def __init__(self):
        self.handlers = {}
        self.sessions = {}
        self.rooms = defaultdict(set)
        self.emitted = []
        self.disconnected = []

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None, namespace=None):
        self.emitted.append(Emitted(event, data, to if to is not None else room, skip_sid))

    async def enter_room(self, sid, room, namespace=None):
        self.rooms[room].add(sid)

    async def leave_room(self, sid, room, namespace=None):
        self.rooms[room].discard(sid)

    async def save_session(self, sid, session, namespace=None):
        self.sessions[sid] = dict(session)

    async def get_session(self, sid, namespace=None):
        return self.sessions.get(sid, {})

    async def disconnect(self, sid, namespace=None):
        self.disconnected.append(sid)
        handler = self.handlers.get("disconnect")
        if handler is not None:
            await handler(sid, "server disconnect")

    # Assertion helpers

    def events(self, name):
        return [e for e in self.emitted if e.event == name]

    def recipients(self, emitted):
        """Sids an emit would reach, mirroring python-socketio addressing."""
        if emitted.to is None:
            sids = set(self.sessions)
        else:
            targets = emitted.to if isinstance(emitted.to, list) else [emitted.to]
            sids = set()
            for target in targets:
                if target in self.rooms:
                    sids |= self.rooms[target]
                elif target in self.sessions:
                    sids.add(target)
        sids.discard(emitted.skip_sid)
        return sids

    def reset(self):
        self.emitted.clear()


class FakeCache:
    """Dict-backed stand-in with the CacheService interface."""

    user_key = staticmethod(CacheService.user_key)

    def __init__(self):
        self.store = {}
        self.deleted = []

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=None):
        self.store[key] = value
        return True

    def delete(self, key):
        self.deleted.append(key)
        self.store.pop(key, None)
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def sio():
    return FakeSocketServer()


@pytest.fixture
def gateway(sio, session_factory, cache):
    return create_gateway(sio, session_factory=session_factory, cache=cache)


@pytest.fixture
def make_user(session_factory):
    def _make_user(name="Student", role="student", approved=True, user_id=None):
        with session_factory() as db:
            user = User(name=name, role=role, is_approved=approved, email=f"{name.lower().replace(' ', '.')}@example.com")
            if user_id:
                user.id = user_id
            db.add(user)
            db.commit()
            return user
    return _make_user


@pytest.fixture
def questions():
    return [
        {
            "id": "q-single",
            "answer_type": "single-choice",
            "options": [{"id": "a", "is_correct": False}, {"id": "b", "is_correct": True}],
            "points": 2,
        },
        {
            "id": "q-multi",
            "answer_type": "multiple-choice",
            "options": [
                {"id": "x", "is_correct": True},
                {"id": "y", "is_correct": False},
                {"id": "z", "is_correct": True},
            ],
            "points": 3,
        },
        {
            "id": "q-text",
            "answer_type": "text-answer",
            "correct_answer": "Paris",
            "points": 1,
        },
        {
            "id": "q-bool",
            "answer_type": "true-false",
            "correct_boolean": True,
            "points": 1,
        },
    ]


@pytest.fixture
def make_quiz(session_factory, questions):
    def _make_quiz(title="Geography", quiz_questions=None, duration=None):
        with session_factory() as db:
            quiz = Quiz(title=title, questions=quiz_questions if quiz_questions is not None else questions, duration=duration)
            db.add(quiz)
            db.commit()
            return quiz
    return _make_quiz


@pytest.fixture
def make_attempt(session_factory):
    def _make_attempt(student, quiz, **fields):
        with session_factory() as db:
            attempt = QuizAttempt(student_id=student.id, quiz_id=quiz.id, **fields)
            db.add(attempt)
            db.commit()
            return attempt
    return _make_attempt


@pytest.fixture
def load_attempt(session_factory):
    def _load_attempt(attempt_id):
        with session_factory() as db:
            return db.get(QuizAttempt, attempt_id)
    return _load_attempt


@pytest.fixture
def token_for():
    def _token_for(user, **kwargs):
        return create_access_token(user.id, **kwargs)
    return _token_for
