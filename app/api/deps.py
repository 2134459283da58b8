"""
Shared FastAPI dependencies: gateway access and bearer-token auth
"""
from fastapi import Depends, Header, HTTPException, Request
from typing import Callable, Optional
import logging

from app.realtime.gateway import SessionGateway
from app.services.auth_service import AuthError, UserIdentity

logger = logging.getLogger(__name__)


def get_gateway(request: Request) -> SessionGateway:
    return request.app.state.gateway


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    gateway: SessionGateway = Depends(get_gateway)
) -> UserIdentity:
    """Resolve the bearer token with the same authenticator the socket handshake uses"""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Access token is required")

    try:
        return gateway.authenticator.authenticate(authorization[len("Bearer "):].strip())
    except AuthError as e:
        logger.info(f"REST authentication failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def require_roles(*roles: str) -> Callable[..., UserIdentity]:
    """Dependency factory rejecting users outside ``roles`` with 403"""

    def dependency(user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency
