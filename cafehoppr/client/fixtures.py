from __future__ import annotations

from datetime import datetime

from cafehoppr.schemas.cafes import CafeResponse
from cafehoppr.schemas.locations import LocationResponse

# Shown only when SHOW_SAMPLE_ON_ERROR is enabled and the backend cannot be read.
SAMPLE_LOCATIONS = [
    {"location_id": "loc-1", "name": "Jakarta"},
    {"location_id": "loc-2", "name": "Bandung"},
]

SAMPLE_CAFES = [
    {
        "cafe_id": "sample-cafe-1",
        "name": "Sample Cafe",
        "cafe_photo": "https://images.unsplash.com/photo-1504753793650-d4a2b783c15e",
        "cafe_location_link": "https://maps.google.com/?q=Sample+Cafe",
        "location_id": "loc-1",
        "operational_days": ["MON", "TUE", "WED", "THU", "FRI"],
        "opening_hour": "08:00",
        "closing_hour": "18:00",
        "status": "approved",
        "avg_rating": 7.2,
        "reviews_count": 1,
        "reviews": [
            {
                "review_id": "sample-review-1",
                "cafe_id": "sample-cafe-1",
                "review": "Cozy place with good Wi-Fi",
                "price": 7,
                "wifi": 8,
                "seat_comfort": 8,
                "electricity_socket": 7,
                "food_beverage": 8,
                "praying_room": 0,
                "hospitality": 9,
                "toilet": 7,
                "noise": 5,
                "parking": 6,
                "created_by": "Guest",
            }
        ],
    },
]


def sample_locations() -> list[LocationResponse]:
    return [LocationResponse.model_validate(loc) for loc in SAMPLE_LOCATIONS]


def sample_cafes() -> list[CafeResponse]:
    now = datetime.utcnow()
    cafes = []
    for raw in SAMPLE_CAFES:
        cafe = CafeResponse.model_validate({**raw, "created_at": now, "updated_at": now})
        cafes.append(cafe)
    return cafes
