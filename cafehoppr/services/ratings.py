from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from cafehoppr.models.cafes import Cafe
from cafehoppr.models.enums import RATING_FIELDS, RATING_MAX
from cafehoppr.models.reviews import Review

STAR_FULL = "full"
STAR_HALF = "half"
STAR_EMPTY = "empty"

BADGE_LABELS: dict[str, str] = {
    "price": "Price",
    "wifi": "Wi-Fi",
    "seat_comfort": "Seat comfort",
    "electricity_socket": "Electricity",
    "food_beverage": "Food & beverage",
    "praying_room": "Praying room",
    "hospitality": "Hospitality",
    "toilet": "Toilet",
    "noise": "Noise",
    "parking": "Parking",
}


@dataclass(frozen=True)
class Badge:
    field: str
    label: str
    value: int

    @property
    def text(self) -> str:
        return f"{self.value}/{RATING_MAX}"


def _rating(review: Any, field: str) -> int:
    if isinstance(review, Mapping):
        raw = review.get(field)
    else:
        raw = getattr(review, field, 0)
    return int(raw or 0)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def flat_pool_average(reviews: Iterable[Any]) -> float:
    """Mean of every non-zero rating cell across all reviews of a cafe.

    Each populated field of each review counts once; zeros mean "not rated" and
    are left out of the pool. Returns 0.0 when nothing was rated.
    """
    total = 0
    count = 0
    for review in reviews:
        for field in RATING_FIELDS:
            value = _rating(review, field)
            if value > 0:
                total += value
                count += 1
    if count == 0:
        return 0.0
    return total / count


def field_averages(reviews: Iterable[Any]) -> dict[str, int]:
    """Per-field badge values: rounded mean over all reviews, zeros included."""
    reviews = list(reviews)
    if not reviews:
        return {field: 0 for field in RATING_FIELDS}
    return {
        field: round_half_up(sum(_rating(r, field) for r in reviews) / len(reviews))
        for field in RATING_FIELDS
    }


def visible_badges(reviews: Iterable[Any]) -> list[Badge]:
    averages = field_averages(reviews)
    return [
        Badge(field=field, label=BADGE_LABELS[field], value=value)
        for field, value in averages.items()
        if value > 0
    ]


def star_states(rating: float, *, total: int = RATING_MAX) -> list[str]:
    full = int(math.floor(rating))
    fraction = rating - full
    has_half = 0.1 <= fraction <= 0.9

    states: list[str] = []
    for i in range(1, total + 1):
        if i <= full:
            states.append(STAR_FULL)
        elif i == full + 1 and has_half:
            states.append(STAR_HALF)
        else:
            states.append(STAR_EMPTY)
    return states


def format_rating(rating: float) -> str:
    return f"{rating:.1f}"


def recompute_cafe_rating(db: Session, *, cafe_id: str) -> None:
    """Recompute the stored aggregate fields of a cafe (avg_rating, reviews_count).

    The listing sorts on these columns, so every review write must call this.
    """
    cafe = db.get(Cafe, cafe_id)
    if not cafe:
        return

    reviews = list(db.scalars(select(Review).where(Review.cafe_id == cafe_id)).all())
    cafe.reviews_count = len(reviews)
    cafe.avg_rating = flat_pool_average(reviews)
    db.add(cafe)
    db.commit()
