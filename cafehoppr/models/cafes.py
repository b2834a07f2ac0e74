from __future__ import annotations

import uuid
from datetime import datetime, time

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cafehoppr.db.base import Base
from cafehoppr.models.enums import CafeStatus


class Cafe(Base):
    __tablename__ = "cafes"

    cafe_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    # Legacy single photo link; uploaded photos live in cafe_photos.
    cafe_photo: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    cafe_location_link: Mapped[str] = mapped_column(String(1000), nullable=False)
    # Comma-separated weekday codes, e.g. "MON,TUE,WED"
    operational_days: Mapped[str] = mapped_column(String(40), nullable=False, default="")
    opening_hour: Mapped[time | None] = mapped_column(Time, nullable=True)
    closing_hour: Mapped[time | None] = mapped_column(Time, nullable=True)
    location_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("locations.location_id", ondelete="SET NULL"), nullable=True, index=True
    )
    contributor_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CafeStatus.approved.value, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    avg_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, index=True)
    reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped["Location"] = relationship(back_populates="cafes")
    reviews: Mapped[list["Review"]] = relationship(
        back_populates="cafe", cascade="all, delete-orphan", order_by="Review.created_at.desc()"
    )
    photos: Mapped[list["CafePhoto"]] = relationship(
        back_populates="cafe", cascade="all, delete-orphan", order_by="CafePhoto.order"
    )


class CafePhoto(Base):
    __tablename__ = "cafe_photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafes.cafe_id"), nullable=False, index=True)
    photo_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    cafe: Mapped[Cafe] = relationship(back_populates="photos")


Index("ix_cafes_status_created_at", Cafe.status, Cafe.created_at)
