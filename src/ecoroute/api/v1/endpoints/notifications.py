# src/ecoroute/api/v1/endpoints/notifications.py
"""Notification endpoints for the EcoRoute API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from ecoroute.api.v1.dependencies import CurrentUserDep, SessionDep
from ecoroute.schemas.notification import NotificationResponse
from ecoroute.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Notification not found",
    )


@router.get("/")
async def list_notifications(
    current_user: CurrentUserDep,
    db: SessionDep,
    unread: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    """List the caller's active notifications, newest first, with the unread count."""
    notifications = notification_service.list_notifications(
        db,
        current_user.id,
        unread_only=unread,
        limit=limit,
        offset=offset,
    )
    return {
        "notifications": [
            NotificationResponse.model_validate(n).to_wire() for n in notifications
        ],
        "unreadCount": notification_service.unread_count(db, current_user.id),
    }


@router.get("/unread-count")
async def get_unread_count(current_user: CurrentUserDep, db: SessionDep) -> dict[str, int]:
    """Return the number of active unread notifications."""
    return {"count": notification_service.unread_count(db, current_user.id)}


@router.put("/read-all")
async def mark_all_read(current_user: CurrentUserDep, db: SessionDep) -> dict[str, int]:
    """Mark every active notification of the caller as read."""
    return {"updated": notification_service.mark_all_read(db, current_user.id)}


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, Any]:
    """Mark one notification as read. Repeating the call changes nothing."""
    notification = notification_service.mark_read(db, current_user.id, notification_id)
    if notification is None:
        raise _not_found()
    return NotificationResponse.model_validate(notification).to_wire()


@router.put("/{notification_id}/unread")
async def mark_notification_unread(
    notification_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, Any]:
    notification = notification_service.mark_unread(db, current_user.id, notification_id)
    if notification is None:
        raise _not_found()
    return NotificationResponse.model_validate(notification).to_wire()


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> None:
    """Soft-delete one of the caller's notifications."""
    if not notification_service.soft_delete(db, current_user.id, notification_id):
        raise _not_found()
