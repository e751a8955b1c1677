# src/ecoroute/schemas/chat.py
"""Chat message schemas shared by the gateway and the REST API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ecoroute.db.time import as_utc
from ecoroute.models.chat_message import DEFAULT_ROOM


class SendMessagePayload(BaseModel):
    """Body of a ``send-message`` event."""

    room: str = Field(DEFAULT_ROOM, description="Room the message belongs to")
    message: str = Field(..., description="Message text")
    recipient: int | None = Field(None, description="Recipient user id for private delivery")


class JoinRoomPayload(BaseModel):
    """Body of a ``join-room`` event given as an object rather than a bare name."""

    room: str
    before: datetime | None = Field(None, description="Only return messages older than this")
    limit: int | None = Field(None, ge=1, le=100)


class TypingPayload(BaseModel):
    """Body of a ``typing`` event."""

    room: str
    is_typing: bool = Field(False, alias="isTyping")

    model_config = ConfigDict(populate_by_name=True)


class ChatMessageResponse(BaseModel):
    """Message record as pushed to clients and returned by the API."""

    id: int
    content: str
    room: str
    sender_id: int = Field(serialization_alias="sender")
    sender_name: str = Field(serialization_alias="senderName")
    recipient_id: int | None = Field(None, serialization_alias="recipient")
    status: str
    read_at: datetime | None = Field(None, serialization_alias="readAt")
    created_at: datetime = Field(serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("read_at", "created_at")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        """Render timestamps as UTC ISO-8601 strings."""
        if value is None:
            return None
        return as_utc(value).isoformat()

    def to_wire(self) -> dict:
        """Return the JSON-ready camelCase payload."""
        return self.model_dump(by_alias=True, mode="json")
