from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cafehoppr.db.base import Base
from cafehoppr.models.enums import RATING_FIELDS


def _rating_range(field: str) -> CheckConstraint:
    # 0 means "not rated"
    return CheckConstraint(f"{field} >= 0 AND {field} <= 10", name=f"ck_reviews_{field}_range")


class Review(Base):
    __tablename__ = "reviews"

    review_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cafe_id: Mapped[str] = mapped_column(String(36), ForeignKey("cafes.cafe_id"), nullable=False, index=True)
    review: Mapped[str] = mapped_column(Text, nullable=False, default="")

    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wifi: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    seat_comfort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    electricity_socket: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    food_beverage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    praying_room: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hospitality: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    toilet: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    noise: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parking: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[str] = mapped_column(String(120), nullable=False, default="", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    cafe: Mapped["Cafe"] = relationship(back_populates="reviews")

    __table_args__ = tuple(_rating_range(f) for f in RATING_FIELDS)


Index("ix_reviews_cafe_created_at", Review.cafe_id, Review.created_at)
