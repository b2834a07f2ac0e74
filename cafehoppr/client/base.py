from __future__ import annotations

import abc
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

from cafehoppr.schemas.cafes import CafeCreate, CafeCreated, CafeListData, CafeResponse, CafeUpdate
from cafehoppr.schemas.locations import LocationResponse
from cafehoppr.schemas.reviews import ReviewCreate, ReviewResponse, ReviewUpdate
from cafehoppr.schemas.tokens import TokenValidation


@dataclass
class BackendError(Exception):
    status_code: int
    message: str
    details: Any = None

    def __str__(self) -> str:
        return self.message


class NotImplementedBackendError(BackendError):
    """The deployment does not support the operation (HTTP 501)."""


class AuthError(BackendError):
    """Missing, invalid or insufficient authorization (HTTP 401/403)."""


@dataclass
class Attachment:
    """A photo staged on local disk, waiting to be sent with a cafe write."""

    filename: str
    path: Path
    content_type: str = "application/octet-stream"

    def open(self) -> BinaryIO:
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise BackendError(422, f"Staged photo {self.filename!r} is gone; please upload it again") from e


@dataclass
class CafeQuery:
    q: str | None = None
    location_id: str | None = None
    sort: str = "newest"
    status: str = "approved"
    page: int = 1
    per_page: int = 20
    extra: dict[str, Any] = field(default_factory=dict)


class CafeBackend(abc.ABC):
    """Data access contract shared by the HTTP client and the direct SQL backend.

    Reads return normalised schema objects; ``get_*`` return None when the
    record does not exist. Every failure is raised as BackendError.
    """

    # --- Cafes ---
    @abc.abstractmethod
    def list_cafes(self, query: CafeQuery | None = None) -> CafeListData: ...

    @abc.abstractmethod
    def get_cafe(self, cafe_id: str) -> CafeResponse | None: ...

    @abc.abstractmethod
    def create_cafe(
        self, payload: CafeCreate, *, token: str | None = None, photos: list[Attachment] | None = None
    ) -> CafeCreated: ...

    @abc.abstractmethod
    def update_cafe(
        self,
        cafe_id: str,
        payload: CafeUpdate,
        *,
        token: str | None = None,
        photos: list[Attachment] | None = None,
    ) -> None: ...

    @abc.abstractmethod
    def delete_cafe(self, cafe_id: str, *, token: str | None = None) -> None: ...

    # --- Reviews ---
    @abc.abstractmethod
    def list_reviews(self, cafe_id: str) -> list[ReviewResponse]: ...

    @abc.abstractmethod
    def create_review(self, payload: ReviewCreate, *, token: str | None = None) -> ReviewResponse: ...

    @abc.abstractmethod
    def update_review(self, review_id: str, payload: ReviewUpdate, *, token: str | None = None) -> None: ...

    @abc.abstractmethod
    def list_contributors(self) -> list[str]: ...

    # --- Locations ---
    @abc.abstractmethod
    def list_locations(self) -> list[LocationResponse]: ...

    @abc.abstractmethod
    def create_location(self, name: str, *, token: str | None = None) -> LocationResponse: ...

    # --- Access ---
    @abc.abstractmethod
    def validate_token(self, token: str) -> TokenValidation | None: ...

    @abc.abstractmethod
    def verify_access_code(self, code: str) -> str:
        """Return a contributor token; raise AuthError on a wrong code."""

    @abc.abstractmethod
    def login(self, email: str, password: str, hobby_answer: str | None = None) -> str: ...

    @abc.abstractmethod
    def get_access_code(self, *, token: str | None = None) -> str: ...

    @abc.abstractmethod
    def update_access_code(self, new_code: str, *, token: str | None = None) -> None: ...


def error_for_status(status_code: int, message: str, details: Any = None) -> BackendError:
    if status_code == 501:
        return NotImplementedBackendError(status_code, message, details)
    if status_code in (401, 403):
        return AuthError(status_code, message, details)
    return BackendError(status_code, message, details)
