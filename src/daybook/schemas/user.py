"""Pydantic schemas for accounts."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class Credentials(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=1, max_length=128)


class LoginRequest(BaseModel):
    # Unvalidated: malformed credentials fail as 401 like any other.
    username: str
    password: str


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    roles: list[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=1, max_length=128)
