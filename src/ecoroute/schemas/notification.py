# src/ecoroute/schemas/notification.py
"""Notification-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ecoroute.db.time import as_utc
from ecoroute.models.notification import MESSAGE_MAX_LENGTH, TITLE_MAX_LENGTH

NotificationType = Literal[
    "welcome",
    "collection",
    "route",
    "point",
    "message",
    "achievement",
    "alert",
    "reminder",
    "system",
]
NotificationColor = Literal["primary", "success", "warning", "danger", "info"]
NotificationPriority = Literal["low", "medium", "high", "urgent"]


class NotificationCreate(BaseModel):
    """Validated input of the single notification creation path."""

    user_id: int
    type: NotificationType = "system"
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    data: dict[str, Any] = Field(default_factory=dict)
    link: str | None = None
    icon: str = "fas fa-bell"
    color: NotificationColor = "primary"
    priority: NotificationPriority = "medium"
    expires_at: datetime | None = None

    model_config = ConfigDict(str_strip_whitespace=True)


class NotificationResponse(BaseModel):
    """Notification record as pushed to clients and returned by the API."""

    id: int
    user_id: int = Field(serialization_alias="user")
    type: str
    title: str
    message: str
    data: dict[str, Any]
    link: str | None
    icon: str
    color: str
    read: bool
    read_at: datetime | None = Field(None, serialization_alias="readAt")
    priority: str
    expires_at: datetime = Field(serialization_alias="expiresAt")
    created_at: datetime = Field(serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("read_at", "expires_at", "created_at")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        """Render timestamps as UTC ISO-8601 strings."""
        if value is None:
            return None
        return as_utc(value).isoformat()

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase payload."""
        return self.model_dump(by_alias=True, mode="json")


class BroadcastPayload(BaseModel):
    """Body of an admin ``broadcast-notification`` event."""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    message: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    type: str = Field("info", description="Presentation kind of the broadcast")
