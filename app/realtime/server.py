"""
Socket.IO server construction and gateway wiring
"""
import logging
from typing import Callable, Optional

import socketio
from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.realtime.gateway import SessionGateway
from app.realtime.presence import PresenceRegistry
from app.services.auth_service import TokenAuthenticator
from app.services.autosave_service import AutosaveService
from app.services.user_service import UserService
from app.utils.cache import CacheService

logger = logging.getLogger(__name__)


def create_socket_server() -> socketio.AsyncServer:
    """
    ASGI Socket.IO server

    async_handlers=False runs each client's handlers one at a time, in
    arrival order; different clients are still served concurrently.
    """
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.ALLOWED_ORIGINS,
        ping_timeout=settings.SOCKETIO_PING_TIMEOUT,
        ping_interval=settings.SOCKETIO_PING_INTERVAL,
        async_handlers=False,
        logger=False,
        engineio_logger=False,
    )


def create_gateway(
    sio: socketio.AsyncServer,
    session_factory: Callable[[], Session] = SessionLocal,
    cache: Optional[CacheService] = None
) -> SessionGateway:
    """Build the gateway with a fresh presence registry and register its handlers"""
    users = UserService(session_factory, cache or CacheService())
    gateway = SessionGateway(
        sio=sio,
        registry=PresenceRegistry(),
        authenticator=TokenAuthenticator(users),
        users=users,
        autosave=AutosaveService(session_factory),
    )
    gateway.register_handlers()
    logger.info("Socket.IO gateway initialized")
    return gateway
