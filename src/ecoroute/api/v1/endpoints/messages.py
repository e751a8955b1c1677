# src/ecoroute/api/v1/endpoints/messages.py
"""Chat history endpoints for the EcoRoute API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from ecoroute.api.v1.dependencies import CurrentUserDep, SessionDep
from ecoroute.schemas.chat import ChatMessageResponse
from ecoroute.services import message_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/rooms/{room}")
async def get_room_history(
    room: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    limit: int = Query(50, ge=1, le=100),
    before: datetime | None = Query(None),
) -> dict[str, Any]:
    """Page back through a room's messages, newest first."""
    messages = message_service.get_room_history(
        db, room, limit=limit, before=before, viewer_id=current_user.id
    )
    return {
        "room": room,
        "messages": [ChatMessageResponse.model_validate(m).to_wire() for m in messages],
    }


@router.put("/{message_id}/read")
async def mark_message_read(
    message_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, Any]:
    """Mark a message addressed to the caller (or posted in a room) as read."""
    message = message_service.get_message(db, message_id)
    if message is None or (
        message.recipient_id is not None and message.recipient_id != current_user.id
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        )

    if message.sender_id != current_user.id:
        message = message_service.mark_read(db, message_id)
    return ChatMessageResponse.model_validate(message).to_wire()
