from __future__ import annotations

import logging

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cafehoppr.core.config import settings
from cafehoppr.core.deps import WriteGrant, require_grant
from cafehoppr.db import crud
from cafehoppr.models.cafes import Cafe
from cafehoppr.models.enums import TokenType
from cafehoppr.models.locations import Location
from cafehoppr.models.reviews import Review
from cafehoppr.schemas.cafes import CafeCreate, CafeCreated, CafeUpdate
from cafehoppr.schemas.reviews import ReviewCreate, ReviewUpdate
from cafehoppr.services.access import consume_token
from cafehoppr.services.uploads import InvalidUploadError, check_uploads, remove_cafe_photos, save_cafe_photos

logger = logging.getLogger(__name__)


def _not_found(what: str = "Cafe") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


def _check_location(db: Session, location_id: str | None) -> None:
    if location_id and not db.get(Location, location_id):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Unknown location_id")


def _check_photos(uploads: list[UploadFile]) -> None:
    try:
        check_uploads(uploads)
    except InvalidUploadError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


def _store_photos(db: Session, cafe: Cafe, uploads: list[UploadFile], *, replace: bool = False) -> None:
    if not uploads:
        return
    try:
        urls = save_cafe_photos(cafe.cafe_id, uploads)
    except InvalidUploadError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except OSError as e:
        logger.exception("Could not store photos for cafe %s", cafe.cafe_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not store photos") from e
    crud.add_photos(db, cafe, urls, replace=replace)


def _finish_grant(db: Session, grant: WriteGrant) -> None:
    if grant.upsert_token is not None:
        consume_token(db, grant.upsert_token)


def submit_cafe(
    db: Session, grant: WriteGrant, payload: CafeCreate, uploads: list[UploadFile] | None = None
) -> CafeCreated:
    """Create a cafe (plus its first review and photos) on behalf of ``grant``."""
    uploads = uploads or []
    require_grant(grant, TokenType.add_cafe)
    _check_location(db, payload.location_id)
    _check_photos(uploads)

    cafe_status = settings.default_cafe_status
    if grant.is_admin and payload.status is not None:
        cafe_status = payload.status.value

    try:
        cafe, review = crud.create_cafe(db, payload, status=cafe_status)
    except crud.DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    cafe_id = cafe.cafe_id

    try:
        _store_photos(db, cafe, uploads)
    except (HTTPException, SQLAlchemyError):
        # A cafe whose photos failed to save must not outlive the request.
        db.rollback()
        crud.delete_cafe(db, cafe)
        remove_cafe_photos(cafe_id)
        raise
    _finish_grant(db, grant)
    return CafeCreated(cafe_id=cafe_id, review_id=review.review_id if review else None)


def edit_cafe(
    db: Session,
    grant: WriteGrant,
    cafe_id: str,
    payload: CafeUpdate,
    uploads: list[UploadFile] | None = None,
    *,
    replace_photos: bool = False,
) -> Cafe:
    uploads = uploads or []
    require_grant(grant, TokenType.edit_cafe, cafe_id=cafe_id)
    cafe = crud.get_cafe(db, cafe_id)
    if not cafe:
        raise _not_found()

    _check_photos(uploads)
    if "location_id" in payload.model_fields_set:
        _check_location(db, payload.location_id)

    try:
        crud.update_cafe(db, cafe, payload, allow_status=grant.is_admin)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    _store_photos(db, cafe, uploads, replace=replace_photos)
    _finish_grant(db, grant)
    db.expire_all()
    return crud.get_cafe(db, cafe_id)


def remove_cafe(db: Session, cafe_id: str) -> None:
    if not settings.allow_cafe_delete:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="Cafe deletion is not implemented")
    cafe = crud.get_cafe(db, cafe_id)
    if not cafe:
        raise _not_found()
    crud.delete_cafe(db, cafe)
    remove_cafe_photos(cafe_id)


def submit_review(db: Session, grant: WriteGrant, payload: ReviewCreate) -> Review:
    require_grant(grant, TokenType.add_review, cafe_id=payload.cafe_id)
    if not db.get(Cafe, payload.cafe_id):
        raise _not_found()
    review = crud.create_review(db, payload)
    _finish_grant(db, grant)
    return review


def edit_review(db: Session, grant: WriteGrant, review_id: str, payload: ReviewUpdate) -> Review:
    review = db.get(Review, review_id)
    if not review:
        raise _not_found("Review")
    require_grant(grant, TokenType.edit_cafe, cafe_id=review.cafe_id)
    review = crud.update_review(db, review, payload)
    _finish_grant(db, grant)
    return review
