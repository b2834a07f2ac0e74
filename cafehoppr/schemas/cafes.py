from __future__ import annotations

from datetime import datetime, time
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from cafehoppr.models.enums import CafeStatus, Weekday
from cafehoppr.schemas.common import Pagination
from cafehoppr.schemas.locations import LocationResponse
from cafehoppr.schemas.reviews import ReviewDraft, ReviewResponse, ReviewUpdate
from cafehoppr.services.schedule import format_hour, parse_hour, parse_operational_days


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_url(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not is_valid_url(value):
        raise ValueError("must be a valid http(s) URL")
    return value


def _check_hours(opening: time | None, closing: time | None) -> None:
    if opening is not None and closing is not None and opening >= closing:
        raise ValueError("opening_hour must be earlier than closing_hour")


class CafeWriteFields(BaseModel):
    @field_validator("operational_days", mode="before", check_fields=False)
    @classmethod
    def _parse_days(cls, v: Any) -> Any:
        if v is None:
            return None
        return parse_operational_days(v)

    @field_validator("opening_hour", "closing_hour", mode="before", check_fields=False)
    @classmethod
    def _parse_hours(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        parsed = parse_hour(v)
        if parsed is None:
            raise ValueError("must be a time of day like 08:00")
        return parsed

    @field_validator("cafe_photo", mode="before", check_fields=False)
    @classmethod
    def _photo_url(cls, v: Any) -> Any:
        return _check_url(v)

    @field_validator("name", "contributor_name", mode="before", check_fields=False)
    @classmethod
    def _strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class CafeCreate(CafeWriteFields):
    cafe_id: str | None = Field(default=None, max_length=36)
    name: str = Field(min_length=1, max_length=200)
    cafe_photo: str | None = Field(default=None, max_length=1000)
    cafe_location_link: str = Field(max_length=1000)
    operational_days: list[Weekday] = Field(default_factory=list)
    opening_hour: time | None = None
    closing_hour: time | None = None
    location_id: str | None = None
    contributor_name: str | None = Field(default=None, max_length=120)
    status: CafeStatus | None = None
    review: ReviewDraft | None = None

    @field_validator("cafe_location_link")
    @classmethod
    def _location_link(cls, v: str) -> str:
        checked = _check_url(v)
        if checked is None:
            raise ValueError("must be a valid http(s) URL")
        return checked

    @model_validator(mode="after")
    def _hours_order(self) -> "CafeCreate":
        _check_hours(self.opening_hour, self.closing_hour)
        return self


class CafeUpdate(CafeWriteFields):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    cafe_photo: str | None = Field(default=None, max_length=1000)
    cafe_location_link: str | None = Field(default=None, max_length=1000)
    operational_days: list[Weekday] | None = None
    opening_hour: time | None = None
    closing_hour: time | None = None
    location_id: str | None = None
    contributor_name: str | None = Field(default=None, max_length=120)
    status: CafeStatus | None = None
    # Applied to the most recent review of the cafe (created when none exists).
    review: ReviewUpdate | None = None

    @field_validator("cafe_location_link")
    @classmethod
    def _location_link(cls, v: str | None) -> str | None:
        return _check_url(v)

    @model_validator(mode="after")
    def _hours_order(self) -> "CafeUpdate":
        _check_hours(self.opening_hour, self.closing_hour)
        return self


class CafePhotoResponse(BaseModel):
    id: int
    cafe_id: str
    photo_url: str
    is_primary: bool = False
    order: int = 0
    created_at: datetime | None = None


class CafeResponse(BaseModel):
    cafe_id: str
    name: str
    cafe_photo: str | None = None
    cafe_location_link: str
    status: str = CafeStatus.approved.value
    operational_days: list[Weekday] = Field(default_factory=list)
    opening_hour: str | None = None
    closing_hour: str | None = None
    location_id: str | None = None
    location: LocationResponse | None = None
    contributor_name: str | None = None
    photos: list[CafePhotoResponse] = Field(default_factory=list)
    avg_rating: float = 0.0
    reviews_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    reviews: list[ReviewResponse] = Field(default_factory=list)

    @field_validator("operational_days", mode="before")
    @classmethod
    def _parse_days(cls, v: Any) -> Any:
        return parse_operational_days(v)

    @field_validator("opening_hour", "closing_hour", mode="before")
    @classmethod
    def _format_hours(cls, v: Any) -> Any:
        return format_hour(parse_hour(v)) or None

    @property
    def primary_photo(self) -> str | None:
        for photo in self.photos:
            if photo.is_primary:
                return photo.photo_url
        if self.photos:
            return self.photos[0].photo_url
        return self.cafe_photo


class CafeListData(BaseModel):
    cafes: list[CafeResponse]
    pagination: Pagination
    filters_applied: dict[str, Any] = Field(default_factory=dict)


class CafeCreated(BaseModel):
    cafe_id: str
    review_id: str | None = None
