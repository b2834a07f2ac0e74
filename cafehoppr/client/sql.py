from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from typing import Iterator

from fastapi import HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import Headers

from cafehoppr.client.base import (
    Attachment,
    AuthError,
    BackendError,
    CafeBackend,
    CafeQuery,
    error_for_status,
)
from cafehoppr.core.deps import admin_from_token, resolve_write_grant
from cafehoppr.core.security import create_access_token, create_contributor_token
from cafehoppr.db import crud
from cafehoppr.db.session import SessionLocal
from cafehoppr.models.cafes import Cafe
from cafehoppr.models.enums import CafeStatus
from cafehoppr.schemas.cafes import CafeCreate, CafeCreated, CafeListData, CafeResponse, CafeUpdate
from cafehoppr.schemas.common import Pagination
from cafehoppr.schemas.locations import LocationCreate, LocationResponse
from cafehoppr.schemas.reviews import ReviewCreate, ReviewResponse, ReviewUpdate
from cafehoppr.schemas.tokens import TokenValidation
from cafehoppr.services import access
from cafehoppr.services import cafes as cafe_service

logger = logging.getLogger(__name__)


class SqlBackend(CafeBackend):
    """Talks to the database directly, applying the same rules as the API."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except HTTPException as e:
            db.rollback()
            raise error_for_status(e.status_code, str(e.detail)) from e
        except crud.DuplicateError as e:
            db.rollback()
            raise BackendError(409, str(e)) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Database error")
            raise BackendError(503, "Database unavailable") from e
        except ValidationError as e:
            logger.exception("Stored record does not fit the response schema")
            raise BackendError(500, "Stored data could not be read") from e
        finally:
            db.close()

    @staticmethod
    def _uploads(stack: ExitStack, photos: list[Attachment] | None) -> list[UploadFile]:
        return [
            UploadFile(
                stack.enter_context(p.open()),
                filename=p.filename,
                headers=Headers({"content-type": p.content_type}),
            )
            for p in photos or []
        ]

    # --- Cafes ---
    def list_cafes(self, query: CafeQuery | None = None) -> CafeListData:
        query = query or CafeQuery()
        per_page = max(1, min(query.per_page, 100))
        page = max(1, query.page)
        with self._session() as db:
            items, total = crud.list_cafes(
                db,
                q=query.q,
                location_id=query.location_id,
                status=None if query.status == "all" else query.status,
                sort=query.sort,
                page=page,
                per_page=per_page,
            )
            filters = {k: v for k, v in {"q": query.q, "location_id": query.location_id, "sort": query.sort}.items() if v}
            return CafeListData(
                cafes=[crud.cafe_to_response(c) for c in items],
                pagination=Pagination.build(page=page, per_page=per_page, total=total),
                filters_applied=filters,
            )

    def get_cafe(self, cafe_id: str) -> CafeResponse | None:
        with self._session() as db:
            cafe = crud.get_cafe(db, cafe_id, status=CafeStatus.approved.value)
            return crud.cafe_to_response(cafe) if cafe else None

    def create_cafe(
        self, payload: CafeCreate, *, token: str | None = None, photos: list[Attachment] | None = None
    ) -> CafeCreated:
        with self._session() as db, ExitStack() as stack:
            grant = resolve_write_grant(db, token)
            return cafe_service.submit_cafe(db, grant, payload, self._uploads(stack, photos))

    def update_cafe(
        self,
        cafe_id: str,
        payload: CafeUpdate,
        *,
        token: str | None = None,
        photos: list[Attachment] | None = None,
    ) -> None:
        with self._session() as db, ExitStack() as stack:
            grant = resolve_write_grant(db, token)
            cafe_service.edit_cafe(db, grant, cafe_id, payload, self._uploads(stack, photos), replace_photos=bool(photos))

    def delete_cafe(self, cafe_id: str, *, token: str | None = None) -> None:
        with self._session() as db:
            admin = admin_from_token(db, token)
            cafe_service.remove_cafe(db, cafe_id)
            logger.info("Cafe %s deleted by %s", cafe_id, admin.email)

    # --- Reviews ---
    def list_reviews(self, cafe_id: str) -> list[ReviewResponse]:
        with self._session() as db:
            if not db.get(Cafe, cafe_id):
                raise BackendError(404, "Cafe not found")
            return [crud.review_to_response(r) for r in crud.list_reviews(db, cafe_id)]

    def create_review(self, payload: ReviewCreate, *, token: str | None = None) -> ReviewResponse:
        with self._session() as db:
            grant = resolve_write_grant(db, token)
            return crud.review_to_response(cafe_service.submit_review(db, grant, payload))

    def update_review(self, review_id: str, payload: ReviewUpdate, *, token: str | None = None) -> None:
        with self._session() as db:
            grant = resolve_write_grant(db, token)
            cafe_service.edit_review(db, grant, review_id, payload)

    def list_contributors(self) -> list[str]:
        with self._session() as db:
            return crud.list_contributors(db)

    # --- Locations ---
    def list_locations(self) -> list[LocationResponse]:
        with self._session() as db:
            return [crud.location_to_response(loc) for loc in crud.list_locations(db)]

    def create_location(self, name: str, *, token: str | None = None) -> LocationResponse:
        with self._session() as db:
            admin_from_token(db, token)
            return crud.location_to_response(crud.create_location(db, LocationCreate(name=name)))

    # --- Access ---
    def validate_token(self, token: str) -> TokenValidation | None:
        with self._session() as db:
            row = access.find_usable_token(db, token)
            return access.describe_token(db, row) if row else None

    def verify_access_code(self, code: str) -> str:
        with self._session() as db:
            if not access.verify_access_code(db, code):
                raise AuthError(401, "Access denied! Incorrect code.")
        return create_contributor_token()

    def login(self, email: str, password: str, hobby_answer: str | None = None) -> str:
        with self._session() as db:
            try:
                admin = access.authenticate_admin(db, email.strip(), password, hobby_answer)
            except access.AccessDenied as e:
                raise AuthError(401, str(e)) from e
            return create_access_token(admin.id)

    def get_access_code(self, *, token: str | None = None) -> str:
        with self._session() as db:
            admin_from_token(db, token)
            return access.get_access_code(db).code

    def update_access_code(self, new_code: str, *, token: str | None = None) -> None:
        with self._session() as db:
            admin_from_token(db, token)
            new_code = new_code.strip()
            if not new_code:
                raise BackendError(422, "Access code must not be blank")
            access.rotate_access_code(db, new_code)
