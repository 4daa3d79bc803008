from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

RegisterRole = Literal["student", "coach", "parent", "supporter"]


class RegisterIn(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: RegisterRole
    team: str | None = None
    position: str | None = None
    phone: str | None = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class ProfileUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=120)
    phone: str | None = None
    team: str | None = None
    position: str | None = None


class ChangePasswordIn(BaseModel):
    current_password: str = Field(min_length=6, max_length=128)
    new_password: str = Field(min_length=6, max_length=128)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: EmailStr
    role: str
    team: str | None = None
    position: str | None = None
    phone: str | None = None
    verified: bool
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class AuthOut(BaseModel):
    user: UserOut
    token: str
