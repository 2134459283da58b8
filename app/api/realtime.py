"""
Presence and broadcast API endpoints for supervisors
"""
from fastapi import APIRouter, Depends
import logging

from app.api.deps import get_gateway, require_roles
from app.realtime.gateway import SessionGateway
from app.schemas.realtime import (
    AnnouncementRequest,
    DisconnectResponse,
    OnlineUsersResponse,
    PublicUser,
)
from app.services.auth_service import UserIdentity

router = APIRouter(prefix="/api/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)


@router.get("/online", response_model=OnlineUsersResponse)
async def get_online_users(
    user: UserIdentity = Depends(require_roles("teacher", "admin")),
    gateway: SessionGateway = Depends(get_gateway)
):
    """Users connected to this gateway right now (teachers and admins)"""
    snapshot = gateway.registry.snapshot()
    return OnlineUsersResponse(
        count=len(snapshot),
        users=[PublicUser(**entry) for entry in snapshot]
    )


@router.post("/announcements", status_code=202)
async def send_announcement(
    request: AnnouncementRequest,
    user: UserIdentity = Depends(require_roles("admin")),
    gateway: SessionGateway = Depends(get_gateway)
):
    """Broadcast a `system_announcement` to every connected client"""
    await gateway.dispatcher.send_announcement(request.message, request.type)
    return {"status": "sent"}


@router.post("/users/{user_id}/disconnect", response_model=DisconnectResponse)
async def force_disconnect(
    user_id: str,
    user: UserIdentity = Depends(require_roles("admin")),
    gateway: SessionGateway = Depends(get_gateway)
):
    """Close a user's live connection; it reconnects through a fresh handshake"""
    logger.info(f"Admin {user.user_id} forcing disconnect of {user_id}")
    disconnected = await gateway.disconnect_user(user_id)
    return DisconnectResponse(user_id=user_id, disconnected=disconnected)
