from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cafehoppr.db.base import Base
from cafehoppr.models.enums import TokenType


class AccessCode(Base):
    """Single-row table with the code contributors enter before adding cafes."""

    __tablename__ = "access_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    code: Mapped[str] = mapped_column(String(120), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class UpsertToken(Base):
    __tablename__ = "upsert_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=TokenType.add_cafe.value)
    cafe_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("cafes.cafe_id", ondelete="CASCADE"), nullable=True, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def is_usable(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return self.used_at is None and self.expires_at > now
