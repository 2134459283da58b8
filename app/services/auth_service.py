"""
Token authentication shared by the Socket.IO handshake and the REST layer
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.services.user_service import UserService
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Handshake-time failure; fatal for the connection"""


class InvalidToken(AuthError):
    def __init__(self, message: str = "invalid token", expired: bool = False):
        super().__init__(message)
        self.expired = expired


class UserNotFound(AuthError):
    pass


@dataclass(frozen=True)
class UserIdentity:
    user_id: str
    name: str
    role: str

    def to_public(self) -> Dict[str, Any]:
        return {"id": self.user_id, "name": self.name, "role": self.role}


def create_access_token(user_id: str, expires_minutes: Optional[int] = None, extra: Optional[Dict[str, Any]] = None) -> str:
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = utcnow()
    claims: Dict[str, Any] = {
        "userId": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    if extra:
        claims.update(extra)
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


class TokenAuthenticator:
    """
    Verifies a signed session token and resolves it to a user

    Invoked once per connection (handshake), not per message.
    """

    def __init__(self, users: UserService, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self.users = users
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise InvalidToken("token expired", expired=True) from exc
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

    def authenticate(self, token: str) -> UserIdentity:
        """
        Resolve a token to a user identity

        Raises:
            InvalidToken: bad signature, expired, missing subject, or unapproved account
            UserNotFound: the referenced user no longer exists
        """
        if not token:
            raise InvalidToken("token required")

        claims = self.decode(token)
        user_id = claims.get("userId") or claims.get("sub")
        if not user_id:
            raise InvalidToken("token has no subject")

        user = self.users.get_user(str(user_id))
        if user is None:
            raise UserNotFound(f"user {user_id} not found")

        if user.get("role") != "admin" and not user.get("is_approved"):
            raise InvalidToken("account not approved")

        return UserIdentity(user_id=str(user["id"]), name=user["name"], role=user["role"])
