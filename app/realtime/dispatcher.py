"""
Broadcast fan-out helpers

Fire-and-forget, at most once: no acknowledgement and no retry. A client
that is not connected misses the event and reconciles over REST when it
comes back.
"""
import logging
from typing import Any, Iterable, Optional

from app.config import settings
from app.realtime.rooms import room_for_quiz, room_for_role, room_for_user
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class BroadcastDispatcher:
    def __init__(self, sio: Any, supervisor_roles: Optional[Iterable[str]] = None):
        self.sio = sio
        self.supervisor_rooms = [
            room_for_role(role) for role in (supervisor_roles or settings.SUPERVISOR_ROLES)
        ]

    async def _emit(self, event: str, payload: Any, to: Any = None, skip_sid: Optional[str] = None) -> None:
        await self.sio.emit(event, payload, to=to, skip_sid=skip_sid)

    async def to_connection(self, sid: str, event: str, payload: Any = None) -> None:
        await self._emit(event, payload, to=sid)

    async def to_user(self, user_id: str, event: str, payload: Any) -> None:
        await self._emit(event, payload, to=room_for_user(user_id))

    async def to_role(self, role: str, event: str, payload: Any) -> None:
        await self._emit(event, payload, to=room_for_role(role))

    async def to_quiz(self, quiz_id: str, event: str, payload: Any) -> None:
        """Everyone who joined the quiz room"""
        await self._emit(event, payload, to=room_for_quiz(quiz_id))

    async def to_quiz_supervisors(
        self,
        quiz_id: str,
        event: str,
        payload: Any,
        skip_sid: Optional[str] = None
    ) -> None:
        """
        Supervisor audience for a quiz

        Sent to every supervisor role room. Scoping to the quiz is advisory
        (the payload carries the quiz id), not access control. A connection
        in several of the rooms receives the event once.
        """
        await self.to_supervisors(event, payload, skip_sid=skip_sid)

    async def to_supervisors(self, event: str, payload: Any, skip_sid: Optional[str] = None) -> None:
        await self._emit(event, payload, to=list(self.supervisor_rooms), skip_sid=skip_sid)

    async def to_all(self, event: str, payload: Any) -> None:
        await self._emit(event, payload)

    # Notifications

    async def notify_user(self, user_id: str, notification: dict) -> None:
        await self.to_user(user_id, "new_notification", notification)

    async def notify_role(self, role: str, notification: dict) -> None:
        await self.to_role(role, "new_notification", notification)

    # Quiz lifecycle

    async def notify_quiz_started(self, quiz_id: str, data: dict) -> None:
        await self.to_quiz(quiz_id, "quiz_started", data)

    async def notify_quiz_ended(self, quiz_id: str, data: dict) -> None:
        await self.to_quiz(quiz_id, "quiz_ended", data)

    async def notify_quiz_updated(self, quiz_id: str, data: dict) -> None:
        await self.to_quiz(quiz_id, "quiz_updated", data)

    # Admin

    async def send_dashboard_update(self, data: dict) -> None:
        await self.to_role("admin", "dashboard_update", data)

    async def send_announcement(self, message: str, announcement_type: str = "info") -> None:
        logger.info(f"System announcement ({announcement_type}): {message}")
        await self.to_all("system_announcement", {
            "message": message,
            "type": announcement_type,
            "timestamp": utcnow().isoformat(),
        })
