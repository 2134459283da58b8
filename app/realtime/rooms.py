"""
Room naming and membership on top of Socket.IO rooms

Rooms are created on first join and dropped by the server once empty.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


def room_for_role(role: str) -> str:
    return f"role:{role.strip().lower()}"


def room_for_user(user_id: str) -> str:
    return f"user:{user_id}"


def room_for_quiz(quiz_id: str) -> str:
    return f"quiz:{quiz_id}"


class RoomRouter:
    """Joins and leaves the role/user/quiz rooms for a connection"""

    def __init__(self, sio: Any):
        self.sio = sio

    async def join_identity_rooms(self, sid: str, user_id: str, role: str) -> None:
        """Role and user rooms come from the authenticated identity, never the client"""
        await self.sio.enter_room(sid, room_for_role(role))
        await self.sio.enter_room(sid, room_for_user(user_id))

    async def join_quiz(self, sid: str, quiz_id: str) -> None:
        # enter_room is a set add, so repeated joins are harmless
        await self.sio.enter_room(sid, room_for_quiz(quiz_id))

    async def leave_quiz(self, sid: str, quiz_id: str) -> None:
        await self.sio.leave_room(sid, room_for_quiz(quiz_id))
