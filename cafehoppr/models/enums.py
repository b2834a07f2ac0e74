from __future__ import annotations

from enum import Enum


class CafeStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class TokenType(str, Enum):
    add_cafe = "add_cafe"
    edit_cafe = "edit_cafe"
    add_review = "add_review"


class Weekday(str, Enum):
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        """Map ``datetime.weekday()`` (Monday == 0) to a day code."""
        return list(cls)[index]


# Order matters: it is the display order of badges and rating inputs.
RATING_FIELDS: tuple[str, ...] = (
    "price",
    "wifi",
    "seat_comfort",
    "electricity_socket",
    "food_beverage",
    "praying_room",
    "hospitality",
    "toilet",
    "noise",
    "parking",
)

REQUIRED_RATING_FIELDS: tuple[str, ...] = ("price", "seat_comfort", "wifi", "electricity_socket")

RATING_MIN = 1
RATING_MAX = 10
