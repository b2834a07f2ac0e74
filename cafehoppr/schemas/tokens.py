from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from cafehoppr.models.enums import TokenType, Weekday
from cafehoppr.schemas.reviews import RatingFields
from cafehoppr.services.schedule import parse_operational_days


class TokenCreate(BaseModel):
    type: TokenType
    cafe_id: str | None = None
    expires_in_hours: int | None = Field(default=None, ge=1, le=24 * 90)

    @model_validator(mode="after")
    def _cafe_required(self) -> "TokenCreate":
        if self.type != TokenType.add_cafe and not self.cafe_id:
            raise ValueError(f"cafe_id is required for {self.type.value} tokens")
        return self


class TokenIssued(BaseModel):
    token: str
    type: TokenType
    cafe_id: str | None = None
    expires_at: datetime


class TokenValidateRequest(BaseModel):
    token: str = Field(min_length=1, max_length=120)


class CafePrefill(RatingFields):
    """Form values for a token holder: the cafe plus its latest review."""

    name: str = ""
    cafe_photo: str | None = None
    cafe_location_link: str = ""
    operational_days: list[Weekday] = Field(default_factory=list)
    opening_hour: str | None = None
    closing_hour: str | None = None
    location_id: str | None = None
    existing_photos: list[str] = Field(default_factory=list)
    contributor_name: str | None = None
    review: str = ""

    @field_validator("operational_days", mode="before")
    @classmethod
    def _parse_days(cls, v: Any) -> Any:
        return parse_operational_days(v)


class TokenValidation(BaseModel):
    is_valid: bool = Field(validation_alias=AliasChoices("is_valid", "isValid"))
    type: TokenType
    request_id: int
    expires_at: datetime
    cafe_id: str | None = None
    cafe: CafePrefill | None = None
