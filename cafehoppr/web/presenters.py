from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import Flask

from cafehoppr.models.enums import RATING_FIELDS, Weekday
from cafehoppr.services.ratings import (
    BADGE_LABELS,
    flat_pool_average,
    format_rating,
    star_states,
    visible_badges,
)
from cafehoppr.services.schedule import OpenStatus, open_status

OPEN_STATUS_LABELS = {
    OpenStatus.open: "Open now",
    OpenStatus.closed: "Closed",
}

SORT_LABELS = {
    "newest": "Newest",
    "rating_desc": "Highest Rating",
    "rating_asc": "Lowest Rating",
    "name_asc": "A-Z",
    "name_desc": "Z-A",
}


def format_photo_url(path: str | None, base_url: str | None = None) -> str | None:
    """Absolute URL for a stored photo; relative ``/uploads`` paths get ``base_url``."""
    if not path:
        return None
    if path.startswith(("http://", "https://", "data:")):
        return path
    if not base_url:
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def cafe_rating(cafe: Any) -> float:
    reviews = getattr(cafe, "reviews", None) or []
    if reviews:
        return flat_pool_average(reviews)
    return float(getattr(cafe, "avg_rating", 0.0) or 0.0)


def cafe_open_status(cafe: Any, now: datetime | None = None) -> str | None:
    """Label for the open/closed badge; None renders nothing."""
    status = open_status(cafe.operational_days, cafe.opening_hour, cafe.closing_hour, now=now)
    return OPEN_STATUS_LABELS.get(status)


def register_presenters(app: Flask, *, photo_base_url: str | None = None) -> None:
    app.add_template_filter(format_rating, "rating")
    app.add_template_filter(star_states, "stars")
    app.add_template_filter(visible_badges, "badges")
    app.add_template_filter(cafe_rating, "cafe_rating")
    app.add_template_filter(cafe_open_status, "open_status")
    app.add_template_filter(lambda p: format_photo_url(p, photo_base_url), "photo_url")

    @app.context_processor
    def inject_constants() -> dict[str, Any]:
        return {
            "RATING_FIELDS": RATING_FIELDS,
            "RATING_LABELS": BADGE_LABELS,
            "WEEKDAYS": [d.value for d in Weekday],
            "SORT_LABELS": SORT_LABELS,
        }
