from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location name must not be blank")
        return v


class LocationResponse(BaseModel):
    location_id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LocationListData(BaseModel):
    locations: list[LocationResponse]
