from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class RatingFields(BaseModel):
    """Ten independent ratings; 0 means "not rated"."""

    price: int = Field(default=0, ge=0, le=10)
    wifi: int = Field(default=0, ge=0, le=10)
    seat_comfort: int = Field(default=0, ge=0, le=10)
    electricity_socket: int = Field(default=0, ge=0, le=10)
    food_beverage: int = Field(default=0, ge=0, le=10)
    praying_room: int = Field(default=0, ge=0, le=10)
    hospitality: int = Field(default=0, ge=0, le=10)
    toilet: int = Field(default=0, ge=0, le=10)
    noise: int = Field(default=0, ge=0, le=10)
    parking: int = Field(default=0, ge=0, le=10)


class ReviewDraft(RatingFields):
    """Review submitted together with a new cafe."""

    review: str = Field(default="", max_length=5000)
    created_by: str = Field(
        default="",
        max_length=120,
        validation_alias=AliasChoices("created_by", "reviewer_name"),
    )


class ReviewCreate(ReviewDraft):
    cafe_id: str


class ReviewUpdate(BaseModel):
    review: str | None = Field(default=None, max_length=5000)
    created_by: str | None = Field(
        default=None,
        max_length=120,
        validation_alias=AliasChoices("created_by", "reviewer_name"),
    )
    price: int | None = Field(default=None, ge=0, le=10)
    wifi: int | None = Field(default=None, ge=0, le=10)
    seat_comfort: int | None = Field(default=None, ge=0, le=10)
    electricity_socket: int | None = Field(default=None, ge=0, le=10)
    food_beverage: int | None = Field(default=None, ge=0, le=10)
    praying_room: int | None = Field(default=None, ge=0, le=10)
    hospitality: int | None = Field(default=None, ge=0, le=10)
    toilet: int | None = Field(default=None, ge=0, le=10)
    noise: int | None = Field(default=None, ge=0, le=10)
    parking: int | None = Field(default=None, ge=0, le=10)


class ReviewResponse(RatingFields):
    review_id: str
    cafe_id: str
    review: str = ""
    created_by: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReviewListData(BaseModel):
    reviews: list[ReviewResponse]
