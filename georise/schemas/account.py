"""Account management schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class AccountResponse(BaseModel):
    """Profile plus plan-derived limits."""

    id: UUID
    email: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    plan: str
    role: str
    is_active: bool
    brand_count: int = 0
    max_brands: int = 1
    last_run: datetime | None = None
    next_run_at: datetime | None = None
    created_at: datetime | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class UpdateProfileRequest(BaseModel):
    email: EmailStr | None = None
    display_name: str | None = Field(None, max_length=255)
    bio: str | None = Field(None, max_length=2000)
    avatar_url: str | None = Field(None, max_length=1000)


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1)
