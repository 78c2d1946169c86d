"""Typed views over the free-form notification metadata column.

Metadata stays an open JSON object so any collaborator can attach context,
but types registered in METADATA_MODELS are validated on write and can be
read back as their model.
"""

from typing import Any

from pydantic import BaseModel, Field

from .models import Notification, NotificationType


class InactivityBatchMetadata(BaseModel):
    """Context of one inactivity tier batch: who was affected."""

    user_count: int = Field(..., ge=0)
    users: list[str] = Field(default_factory=list)


class NewLoginMetadata(BaseModel):
    device: str | None = None
    location: str | None = None


class NewUserMetadata(BaseModel):
    new_user_email: str
    new_user_name: str | None = None


METADATA_MODELS: dict[NotificationType, type[BaseModel]] = {
    NotificationType.USER_INACTIVE_15_DAYS: InactivityBatchMetadata,
    NotificationType.USER_INACTIVE_25_DAYS: InactivityBatchMetadata,
    NotificationType.USER_DEACTIVATED_30_DAYS: InactivityBatchMetadata,
    NotificationType.USER_DELETION_WARNING: InactivityBatchMetadata,
    NotificationType.USER_DELETED_365_DAYS: InactivityBatchMetadata,
    NotificationType.NEW_LOGIN: NewLoginMetadata,
    NotificationType.NEW_USER_REGISTERED: NewUserMetadata,
}


def serialize_metadata(
    notification_type: NotificationType,
    metadata: BaseModel | dict[str, Any] | None,
) -> dict[str, Any] | None:
    """Validate metadata against the type's model (if any) and return plain JSON.

    Raises pydantic.ValidationError when a registered type gets malformed metadata.
    """
    if metadata is None:
        return None
    model = METADATA_MODELS.get(notification_type)
    if isinstance(metadata, BaseModel):
        if model is not None and not isinstance(metadata, model):
            metadata = model.model_validate(metadata.model_dump())
        return metadata.model_dump(mode="json")
    if model is None:
        return dict(metadata)
    return model.model_validate(metadata).model_dump(mode="json")


def parse_metadata(notification: Notification) -> BaseModel | dict[str, Any] | None:
    """Typed accessor: the registered model for the notification's type, else the raw dict."""
    raw = notification.metadata_
    if raw is None:
        return None
    model = METADATA_MODELS.get(NotificationType(notification.type))
    if model is None:
        return raw
    return model.model_validate(raw)
