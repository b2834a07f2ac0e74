from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    hobby_answer: str | None = Field(default=None, max_length=200)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    kind: str = "admin"


class AccessCodeVerifyRequest(BaseModel):
    code: str = Field(min_length=1, max_length=120)


class AccessCodeState(BaseModel):
    code: str
    updated_at: datetime | None = None


class AccessCodeUpdate(BaseModel):
    new_code: str = Field(min_length=1, max_length=120)

    @field_validator("new_code")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Access code must not be blank")
        return v


class AdminMeResponse(BaseModel):
    id: str
    email: EmailStr
    is_active: bool
