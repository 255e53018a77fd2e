"""Post and User entities with their closed update models"""

from datetime import datetime

from pydantic import Field

from keyset_repo.entities import BaseEntity, UpdateModel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class Post(BaseEntity):
    title: str = Field(min_length=10, max_length=50)
    content: str = Field(min_length=20)
    user_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PostUpdate(UpdateModel):
    title: str | None = Field(default=None, min_length=10, max_length=50)
    content: str | None = Field(default=None, min_length=20)
    user_id: int | None = None


class User(BaseEntity):
    email: str = Field(pattern=EMAIL_PATTERN)
    encrypted_password: str = ""
    reset_password_token: str | None = None
    reset_password_sent_at: datetime | None = None
    remember_created_at: datetime | None = None
    sign_in_count: int = 0
    current_sign_in_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    current_sign_in_ip: str | None = None
    last_sign_in_ip: str | None = None
    role: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserUpdate(UpdateModel):
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    encrypted_password: str | None = None
    reset_password_token: str | None = None
    reset_password_sent_at: datetime | None = None
    remember_created_at: datetime | None = None
    sign_in_count: int | None = None
    current_sign_in_at: datetime | None = None
    last_sign_in_at: datetime | None = None
    current_sign_in_ip: str | None = None
    last_sign_in_ip: str | None = None
    role: str | None = None
