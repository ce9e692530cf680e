"""
Notification Endpoints.
"""

from typing import List

from fastapi import APIRouter, Query, status

from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import NotFoundError
from portal_apr.core.models.io.auth import MessageResponse
from portal_apr.core.models.io.notifications import NotificationCounts, NotificationCreate, NotificationRead
from portal_apr.server.services.deps import AdminUser, CurrentUser, EventHubDep, SessionDep
from portal_apr.server.services.notifications import NotificationService

router = APIRouter()


@router.get("", response_model=List[NotificationRead], summary="My Notifications")
async def list_notifications(
    user: CurrentUser,
    session: SessionDep,
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    return await NotificationService(session).list_for_user(user, unread_only, limit, offset)


@router.get("/counts", response_model=NotificationCounts, summary="Notification Counts")
async def notification_counts(user: CurrentUser, session: SessionDep):
    return await NotificationService(session).counts(user)


@router.put("/mark-all-read", response_model=MessageResponse, summary="Mark All Read")
async def mark_all_read(user: CurrentUser, session: SessionDep):
    updated = await NotificationService(session).mark_all_read(user)
    return MessageResponse(message=f"{updated} notificaciones marcadas como leídas")


@router.post(
    "/send",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send Notification",
    description="Admin-only: send a notification to a user.",
)
async def send_notification(data: NotificationCreate, _: AdminUser, session: SessionDep, hub: EventHubDep):
    if await UserRepository(session).get_by_id(data.user_id) is None:
        raise NotFoundError("Usuario no encontrado")
    return await NotificationService(session, hub).notify(
        data.user_id,
        data.titulo,
        data.mensaje,
        tipo=data.tipo,
        referencia_tipo=data.referencia_tipo,
        referencia_id=data.referencia_id,
        metadatos=data.metadatos,
    )


@router.put("/{notification_id}/read", response_model=NotificationRead, summary="Mark Read")
async def mark_read(notification_id: int, user: CurrentUser, session: SessionDep):
    return await NotificationService(session).mark_read(user, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Notification")
async def delete_notification(notification_id: int, user: CurrentUser, session: SessionDep) -> None:
    await NotificationService(session).delete(user, notification_id)
