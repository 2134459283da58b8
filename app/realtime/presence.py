"""
Presence registry - who is connected right now

Process-local and owned by the gateway: created at startup, cleared at
shutdown. Only connect/disconnect transitions write to it.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    connection_id: str
    user_id: str
    display_name: str
    role: str
    connected_at: datetime = field(default_factory=utcnow)

    def to_public(self) -> Dict[str, Any]:
        return {"id": self.user_id, "name": self.display_name, "role": self.role}

    def to_online_event(self) -> Dict[str, Any]:
        return {**self.to_public(), "connectedAt": self.connected_at.isoformat()}


class PresenceSnapshot:
    """
    Point-in-time view of the online set

    Iterating builds public projections lazily; the view can be iterated
    any number of times and never reflects later registry changes.
    """

    def __init__(self, sessions: List[SessionInfo]):
        self._sessions = sessions

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return (session.to_public() for session in self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)


class PresenceRegistry:
    """Mapping of user id to the latest connection's session (last write wins)"""

    def __init__(self):
        self._sessions: Dict[str, SessionInfo] = {}

    def register(self, session: SessionInfo) -> SessionInfo:
        """
        Record a connection, superseding any earlier one for the same user

        Returns the stored session; the caller broadcasts ``user_online``
        right after this returns, with no await in between.
        """
        previous = self._sessions.get(session.user_id)
        self._sessions[session.user_id] = session
        if previous is not None and previous.connection_id != session.connection_id:
            logger.info(
                f"User {session.user_id} superseded connection {previous.connection_id} "
                f"with {session.connection_id}"
            )
        return session

    def unregister(self, user_id: str, connection_id: Optional[str] = None) -> Optional[SessionInfo]:
        """
        Remove a user's entry

        No-op when absent. With ``connection_id``, an entry that belongs to a
        newer connection is left alone, so a superseded device disconnecting
        does not mark the user offline.

        Returns:
            The removed session, or None when nothing was removed
        """
        current = self._sessions.get(user_id)
        if current is None:
            return None
        if connection_id is not None and current.connection_id != connection_id:
            return None
        return self._sessions.pop(user_id)

    def get(self, user_id: str) -> Optional[SessionInfo]:
        return self._sessions.get(user_id)

    def snapshot(self) -> PresenceSnapshot:
        return PresenceSnapshot(list(self._sessions.values()))

    def is_online(self, user_id: str) -> bool:
        return user_id in self._sessions

    def count(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
