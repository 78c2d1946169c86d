"""Notification request/response schemas and live event payloads."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from .models import NotificationPriority, NotificationType


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    action_url: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class NotificationPage(BaseModel):
    data: list[NotificationResponse]
    pagination: PaginationInfo
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_ids: list[UUID] = Field(..., min_length=1, max_length=500)


# ── Live deltas (WebSocket) ────────────────────────────────────────────


class NotificationCreatedEvent(BaseModel):
    event: Literal["notification"] = "notification"
    data: NotificationResponse


class UnreadCountData(BaseModel):
    unread_count: int


class UnreadCountEvent(BaseModel):
    event: Literal["unreadCount"] = "unreadCount"
    data: UnreadCountData


LiveEvent = NotificationCreatedEvent | UnreadCountEvent
