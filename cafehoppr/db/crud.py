from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from cafehoppr.models.cafes import Cafe, CafePhoto
from cafehoppr.models.enums import RATING_FIELDS, CafeStatus
from cafehoppr.models.locations import Location
from cafehoppr.models.reviews import Review
from cafehoppr.schemas.cafes import CafeCreate, CafePhotoResponse, CafeResponse, CafeUpdate
from cafehoppr.schemas.locations import LocationCreate, LocationResponse
from cafehoppr.schemas.reviews import ReviewCreate, ReviewDraft, ReviewResponse, ReviewUpdate
from cafehoppr.services.ratings import recompute_cafe_rating
from cafehoppr.services.schedule import days_to_csv, format_hour

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    "newest": (Cafe.created_at.desc(), Cafe.name),
    "rating_desc": (Cafe.avg_rating.desc(), Cafe.reviews_count.desc(), Cafe.name),
    "rating_asc": (Cafe.avg_rating.asc(), Cafe.name),
    "name_asc": (func.lower(Cafe.name).asc(),),
    "name_desc": (func.lower(Cafe.name).desc(),),
}


class DuplicateError(ValueError):
    pass


# --- Converters ---

def location_to_response(loc: Location) -> LocationResponse:
    return LocationResponse(
        location_id=loc.location_id,
        name=loc.name,
        created_at=loc.created_at,
        updated_at=loc.updated_at,
    )


def review_to_response(r: Review) -> ReviewResponse:
    return ReviewResponse(
        review_id=r.review_id,
        cafe_id=r.cafe_id,
        review=r.review or "",
        created_by=r.created_by or "",
        created_at=r.created_at,
        updated_at=r.updated_at,
        **{field: getattr(r, field) or 0 for field in RATING_FIELDS},
    )


def cafe_to_response(cafe: Cafe, *, with_reviews: bool = True) -> CafeResponse:
    return CafeResponse(
        cafe_id=cafe.cafe_id,
        name=cafe.name,
        cafe_photo=cafe.cafe_photo,
        cafe_location_link=cafe.cafe_location_link,
        status=cafe.status,
        operational_days=cafe.operational_days,
        opening_hour=format_hour(cafe.opening_hour) or None,
        closing_hour=format_hour(cafe.closing_hour) or None,
        location_id=cafe.location_id,
        location=location_to_response(cafe.location) if cafe.location else None,
        contributor_name=cafe.contributor_name,
        photos=[
            CafePhotoResponse(
                id=p.id,
                cafe_id=p.cafe_id,
                photo_url=p.photo_url,
                is_primary=p.is_primary,
                order=p.order,
                created_at=p.created_at,
            )
            for p in cafe.photos
        ],
        avg_rating=cafe.avg_rating or 0.0,
        reviews_count=cafe.reviews_count or 0,
        created_at=cafe.created_at,
        updated_at=cafe.updated_at,
        reviews=[review_to_response(r) for r in cafe.reviews] if with_reviews else [],
    )


# --- Cafes ---

def _cafe_query():
    return select(Cafe).options(
        selectinload(Cafe.reviews),
        selectinload(Cafe.photos),
        selectinload(Cafe.location),
    )


def list_cafes(
    db: Session,
    *,
    q: str | None = None,
    location_id: str | None = None,
    status: str | None = CafeStatus.approved.value,
    sort: str = "newest",
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Cafe], int]:
    stmt = _cafe_query()

    if q:
        pattern = f"%{q.strip().lower()}%"
        stmt = stmt.where(
            func.lower(Cafe.name).like(pattern)
            | Cafe.reviews.any(func.lower(Review.review).like(pattern))
        )
    if location_id:
        stmt = stmt.where(Cafe.location_id == location_id)
    if status:
        stmt = stmt.where(Cafe.status == status)

    total = db.scalar(select(func.count()).select_from(stmt.subquery()))
    order_by = SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"])
    items = list(
        db.scalars(
            stmt.order_by(*order_by)
            .limit(per_page)
            .offset((page - 1) * per_page)
        ).all()
    )
    return items, int(total or 0)


def get_cafe(db: Session, cafe_id: str, *, status: str | None = None) -> Cafe | None:
    stmt = _cafe_query().where(Cafe.cafe_id == cafe_id)
    if status:
        stmt = stmt.where(Cafe.status == status)
    return db.scalar(stmt)


def _review_from_draft(cafe_id: str, draft: ReviewDraft) -> Review:
    return Review(
        cafe_id=cafe_id,
        review=draft.review.strip(),
        created_by=draft.created_by.strip(),
        **{field: getattr(draft, field) for field in RATING_FIELDS},
    )


def create_cafe(db: Session, payload: CafeCreate, *, status: str) -> tuple[Cafe, Review | None]:
    cafe_id = payload.cafe_id or str(uuid.uuid4())
    if db.get(Cafe, cafe_id):
        raise DuplicateError(f"Cafe {cafe_id} already exists")

    cafe = Cafe(
        cafe_id=cafe_id,
        name=payload.name,
        cafe_photo=payload.cafe_photo,
        cafe_location_link=payload.cafe_location_link,
        operational_days=days_to_csv(payload.operational_days),
        opening_hour=payload.opening_hour,
        closing_hour=payload.closing_hour,
        location_id=payload.location_id,
        contributor_name=payload.contributor_name,
        status=status,
    )
    db.add(cafe)

    review = None
    if payload.review is not None:
        review = _review_from_draft(cafe_id, payload.review)
        if not review.created_by and payload.contributor_name:
            review.created_by = payload.contributor_name
        db.add(review)

    db.commit()
    recompute_cafe_rating(db, cafe_id=cafe_id)
    logger.info("Cafe created: %s (%s)", cafe.name, cafe_id)
    return cafe, review


def update_cafe(
    db: Session, cafe: Cafe, payload: CafeUpdate, *, allow_status: bool = False
) -> tuple[Cafe, Review | None]:
    changes = payload.model_dump(exclude_unset=True, exclude={"review"})
    if not allow_status:
        changes.pop("status", None)

    if "operational_days" in changes:
        changes["operational_days"] = days_to_csv(changes["operational_days"] or [])
    if "status" in changes and changes["status"] is not None:
        changes["status"] = CafeStatus(changes["status"]).value
    if changes.get("name") is None:
        changes.pop("name", None)
    if changes.get("cafe_location_link") is None:
        changes.pop("cafe_location_link", None)

    opening = changes.get("opening_hour", cafe.opening_hour)
    closing = changes.get("closing_hour", cafe.closing_hour)
    if opening is not None and closing is not None and opening >= closing:
        raise ValueError("opening_hour must be earlier than closing_hour")

    for key, value in changes.items():
        setattr(cafe, key, value)
    cafe.updated_at = datetime.utcnow()
    db.add(cafe)

    review = None
    if payload.review is not None:
        latest = db.scalar(
            select(Review).where(Review.cafe_id == cafe.cafe_id).order_by(Review.created_at.desc()).limit(1)
        )
        review_changes = {
            k: (v.strip() if isinstance(v, str) else v)
            for k, v in payload.review.model_dump(exclude_unset=True).items()
            if v is not None
        }
        if latest is None:
            review = Review(cafe_id=cafe.cafe_id, **review_changes)
            db.add(review)
        else:
            review = latest
            for key, value in review_changes.items():
                setattr(review, key, value)
            review.updated_at = datetime.utcnow()

    db.commit()
    if review is not None:
        recompute_cafe_rating(db, cafe_id=cafe.cafe_id)
    logger.info("Cafe updated: %s fields=%s review=%s", cafe.cafe_id, sorted(changes), bool(review))
    return cafe, review


def delete_cafe(db: Session, cafe: Cafe) -> None:
    cafe_id = cafe.cafe_id
    db.delete(cafe)
    db.commit()
    logger.info("Cafe deleted: %s", cafe_id)


def add_photos(db: Session, cafe: Cafe, urls: list[str], *, replace: bool = False) -> None:
    if replace:
        cafe.photos.clear()
    start = len(cafe.photos)
    for offset, url in enumerate(urls):
        cafe.photos.append(
            CafePhoto(photo_url=url, order=start + offset, is_primary=(start + offset == 0))
        )
    db.add(cafe)
    db.commit()


# --- Reviews ---

def list_reviews(db: Session, cafe_id: str) -> list[Review]:
    stmt = select(Review).where(Review.cafe_id == cafe_id).order_by(Review.created_at.desc())
    return list(db.scalars(stmt).all())


def create_review(db: Session, payload: ReviewCreate) -> Review:
    review = _review_from_draft(payload.cafe_id, payload)
    db.add(review)
    db.commit()
    db.refresh(review)
    recompute_cafe_rating(db, cafe_id=payload.cafe_id)
    logger.info("Review created: %s for cafe %s", review.review_id, payload.cafe_id)
    return review


def update_review(db: Session, review: Review, payload: ReviewUpdate) -> Review:
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    for key, value in changes.items():
        setattr(review, key, value.strip() if isinstance(value, str) else value)
    review.updated_at = datetime.utcnow()
    db.add(review)
    db.commit()
    recompute_cafe_rating(db, cafe_id=review.cafe_id)
    logger.info("Review updated: %s fields=%s", review.review_id, sorted(changes))
    return review


def list_contributors(db: Session) -> list[str]:
    stmt = (
        select(Review.created_by)
        .where(Review.created_by.is_not(None), Review.created_by != "")
        .distinct()
        .order_by(Review.created_by)
    )
    return [name for name in db.scalars(stmt).all()]


# --- Locations ---

def list_locations(db: Session) -> list[Location]:
    return list(db.scalars(select(Location).order_by(Location.name)).all())


def create_location(db: Session, payload: LocationCreate) -> Location:
    existing = db.scalar(select(Location).where(func.lower(Location.name) == payload.name.lower()))
    if existing:
        raise DuplicateError(f"Location {payload.name!r} already exists")
    loc = Location(name=payload.name)
    db.add(loc)
    db.commit()
    db.refresh(loc)
    logger.info("Location created: %s", loc.name)
    return loc
