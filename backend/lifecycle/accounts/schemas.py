"""Account request/response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from .models import UserRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str | None = None
    role: UserRole
    is_active: bool
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}
