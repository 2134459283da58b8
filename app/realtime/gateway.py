"""
Socket.IO session gateway

Connection lifecycle: handshake (token auth) -> register presence, join the
role and user rooms, announce `user_online`, send the `online_users`
snapshot -> handle messages -> on close unregister and announce
`user_offline`.

Client conventions:
- Auth: `auth.token`, an `Authorization: Bearer` header, or `?token=`
- Inbound events: join_quiz, leave_quiz, user_activity, quiz_progress,
  save_answer, typing_notification, heartbeat

Message handlers never raise into the transport; bad payloads and failed
saves are logged and dropped. Only the handshake can refuse a connection.
"""
import logging
from typing import Any, Dict, Optional, Union
from urllib.parse import parse_qs

import socketio
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from app.realtime.dispatcher import BroadcastDispatcher
from app.realtime.presence import PresenceRegistry, SessionInfo
from app.realtime.rooms import RoomRouter
from app.schemas.realtime import QuizProgressPayload, SaveAnswerPayload, TypingPayload
from app.services.auth_service import InvalidToken, TokenAuthenticator, UserNotFound
from app.services.autosave_service import AutosaveService
from app.services.user_service import UserService
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


MESSAGE_EVENTS = (
    "join_quiz",
    "leave_quiz",
    "user_activity",
    "quiz_progress",
    "save_answer",
    "typing_notification",
    "heartbeat",
)


def extract_token(environ: Dict[str, Any], auth: Optional[Any]) -> Optional[str]:
    """
    Extract the session token from the Socket.IO auth payload or environ

    Handles python-socketio environ shapes across ASGI/WSGI servers.
    """
    if isinstance(auth, dict):
        auth_token = auth.get("token")
        if isinstance(auth_token, str) and auth_token:
            return auth_token

    environ = environ or {}
    header = environ.get("HTTP_AUTHORIZATION")
    if isinstance(header, str) and header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token

    scope: Any = environ
    if "asgi.scope" in environ and isinstance(environ.get("asgi.scope"), dict):
        scope = environ["asgi.scope"]

    query_string: Union[str, bytes] = ""
    if "query_string" in scope:
        query_string = scope.get("query_string", b"")
    elif "QUERY_STRING" in environ:
        query_string = environ.get("QUERY_STRING", "")

    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    token = parse_qs(str(query_string)).get("token", [None])[0]
    if isinstance(token, str) and token:
        return token

    return None


def _quiz_id_from(data: Any) -> Optional[str]:
    # Clients send either the bare id or {"quizId": ...}
    if isinstance(data, dict):
        data = data.get("quizId")
    if isinstance(data, (str, int)) and not isinstance(data, bool) and str(data):
        return str(data)
    return None


class SessionGateway:
    """Orchestrates presence, rooms, broadcasts and autosave for socket events"""

    def __init__(
        self,
        sio: Any,
        registry: PresenceRegistry,
        authenticator: TokenAuthenticator,
        users: UserService,
        autosave: AutosaveService,
        dispatcher: Optional[BroadcastDispatcher] = None,
        rooms: Optional[RoomRouter] = None,
    ):
        self.sio = sio
        self.registry = registry
        self.authenticator = authenticator
        self.users = users
        self.autosave = autosave
        self.dispatcher = dispatcher or BroadcastDispatcher(sio)
        self.rooms = rooms or RoomRouter(sio)

    def register_handlers(self) -> None:
        self.sio.on("connect", self.connect)
        self.sio.on("disconnect", self.disconnect)
        for event in MESSAGE_EVENTS:
            self.sio.on(event, getattr(self, event))

    def shutdown(self) -> None:
        logger.info(f"Gateway shutting down with {self.registry.count()} users online")
        self.registry.clear()

    # Lifecycle

    async def connect(self, sid: str, environ: Dict[str, Any], auth: Optional[Any] = None):
        token = extract_token(environ, auth)
        if not token:
            msg = "unauthorized"
            raise socketio.exceptions.ConnectionRefusedError(msg)

        try:
            identity = await run_in_threadpool(self.authenticator.authenticate, token)
        except InvalidToken as exc:
            # Frontend refreshes its token on this exact string
            msg = "jwt_expired" if exc.expired else "unauthorized"
            raise socketio.exceptions.ConnectionRefusedError(msg) from exc
        except UserNotFound as exc:
            msg = "user_not_found"
            raise socketio.exceptions.ConnectionRefusedError(msg) from exc
        except Exception as exc:
            logger.exception("Socket.IO connect error")
            msg = "server_error"
            raise socketio.exceptions.ConnectionRefusedError(msg) from exc

        await self.sio.save_session(
            sid,
            {"user_id": identity.user_id, "name": identity.name, "role": identity.role},
        )
        await self.rooms.join_identity_rooms(sid, identity.user_id, identity.role)

        # Register and announce back to back so nobody sees the user online
        # but missing from the snapshot.
        session = self.registry.register(
            SessionInfo(
                connection_id=sid,
                user_id=identity.user_id,
                display_name=identity.name,
                role=identity.role,
            )
        )
        await self.dispatcher.to_all("user_online", session.to_online_event())
        await self.dispatcher.to_connection(sid, "online_users", list(self.registry.snapshot()))

        logger.info(f"User connected: {identity.name} ({identity.user_id}) sid={sid}")
        await self._write_user(self.users.mark_online, identity.user_id)

    async def disconnect(self, sid: str, reason: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return

        removed = self.registry.unregister(user_id, connection_id=sid)
        if removed is None:
            # Duplicate delivery or a superseded device
            logger.debug(f"Disconnect of sid={sid} left presence for {user_id} unchanged")
            return

        await self.dispatcher.to_all("user_offline", user_id)
        logger.info(f"User disconnected: {user_id} sid={sid} reason={reason}")
        await self._write_user(self.users.mark_offline, user_id)

    async def disconnect_user(self, user_id: str) -> bool:
        """Force-close the registered connection of a user"""
        session = self.registry.get(user_id)
        if session is None:
            return False
        logger.info(f"Forcing disconnect of {user_id} sid={session.connection_id}")
        await self.sio.disconnect(session.connection_id)
        return True

    # Messages

    async def join_quiz(self, sid: str, data: Any = None):
        quiz_id = _quiz_id_from(data)
        if quiz_id is None:
            logger.warning(f"join_quiz without quiz id from sid={sid}")
            return
        await self.rooms.join_quiz(sid, quiz_id)
        logger.info(f"sid={sid} joined quiz {quiz_id}")

    async def leave_quiz(self, sid: str, data: Any = None):
        quiz_id = _quiz_id_from(data)
        if quiz_id is None:
            logger.warning(f"leave_quiz without quiz id from sid={sid}")
            return
        await self.rooms.leave_quiz(sid, quiz_id)
        logger.info(f"sid={sid} left quiz {quiz_id}")

    async def user_activity(self, sid: str, data: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return
        await self._write_user(self.users.touch_last_seen, user_id)
        await self.dispatcher.to_supervisors(
            "user_activity_update",
            {"userId": user_id, "activity": data, "timestamp": utcnow().isoformat()},
        )

    async def quiz_progress(self, sid: str, data: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return
        try:
            payload = QuizProgressPayload.model_validate(data or {})
        except ValidationError:
            logger.warning(f"Invalid quiz_progress payload from {user_id}")
            return
        await self.dispatcher.to_quiz_supervisors(
            payload.quiz_id,
            "student_progress",
            {
                "studentId": user_id,
                "quizId": payload.quiz_id,
                "progress": payload.progress,
                "timestamp": utcnow().isoformat(),
            },
            skip_sid=sid,
        )

    async def save_answer(self, sid: str, data: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return
        try:
            payload = SaveAnswerPayload.model_validate(data or {})
        except ValidationError:
            logger.warning(f"Invalid save_answer payload from {user_id}")
            return

        result = await self.autosave.autosave(
            student_id=user_id,
            attempt_id=payload.attempt_id,
            question_id=payload.question_id,
            answer=payload.answer,
            time_spent=payload.time_spent,
        )
        if result is None:
            return

        await self.dispatcher.to_connection(sid, "answer_saved", result.to_ack())
        await self.dispatcher.to_quiz_supervisors(result.quiz_id, "student_progress", result.to_progress())

    async def typing_notification(self, sid: str, data: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return
        try:
            payload = TypingPayload.model_validate(data or {})
        except ValidationError:
            logger.warning(f"Invalid typing_notification payload from {user_id}")
            return
        await self.dispatcher.to_supervisors(
            "user_typing",
            {"userId": user_id, "isTyping": payload.is_typing},
            skip_sid=sid,
        )

    async def heartbeat(self, sid: str, data: Any = None):
        user_id = await self._user_id(sid)
        if user_id is None:
            return
        await self._write_user(self.users.touch_last_seen, user_id)
        await self.dispatcher.to_connection(sid, "heartbeat_ack")

    # Helpers

    async def _user_id(self, sid: str) -> Optional[str]:
        session = await self.sio.get_session(sid)
        user_id = session.get("user_id") if isinstance(session, dict) else None
        return str(user_id) if user_id else None

    async def _write_user(self, operation, user_id: str) -> None:
        """Collaborator write on the user row; failures never reach the client"""
        try:
            await run_in_threadpool(operation, user_id)
        except SQLAlchemyError:
            logger.exception(f"User update failed for {user_id}")
