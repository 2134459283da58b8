"""
User lookups and presence bookkeeping on the user record
"""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.models import User
from app.utils.cache import CacheService
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class UserService:
    """
    Reads users through the cache and writes last-seen / online flags

    All methods are synchronous; async callers run them in the thread pool.
    """

    def __init__(self, session_factory: Callable[[], Session], cache: CacheService):
        self.session_factory = session_factory
        self.cache = cache

    @staticmethod
    def _serialize(user: User) -> Dict[str, Any]:
        return {
            "id": user.id,
            "name": user.name,
            "role": user.role,
            "is_approved": bool(user.is_approved),
        }

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Resolve a user by id, cache first

        Returns:
            {"id", "name", "role", "is_approved"} or None when the user does not exist
        """
        key = self.cache.user_key(user_id)
        cached = self.cache.get(key)
        if cached:
            return cached

        with self.session_factory() as db:
            user = db.get(User, str(user_id))
            if user is None:
                return None
            data = self._serialize(user)

        self.cache.set(key, data)
        return data

    def invalidate(self, user_id: str) -> None:
        self.cache.delete(self.cache.user_key(user_id))

    def _update(self, user_id: str, **fields) -> bool:
        with self.session_factory() as db:
            user = db.get(User, str(user_id))
            if user is None:
                logger.warning(f"User {user_id} vanished before presence update")
                return False
            for name, value in fields.items():
                setattr(user, name, value)
            db.commit()
        return True

    def touch_last_seen(self, user_id: str) -> bool:
        return self._update(user_id, last_seen=utcnow())

    def mark_online(self, user_id: str) -> bool:
        return self._update(user_id, is_online=True, last_seen=utcnow())

    def mark_offline(self, user_id: str) -> bool:
        """Also drops the cached record so the next handshake re-reads role and approval"""
        updated = self._update(user_id, is_online=False, last_seen=utcnow())
        self.invalidate(user_id)
        return updated
