from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from cafehoppr.core.config import settings
from cafehoppr.core.security import codes_match, generate_upsert_token, verify_password
from cafehoppr.models.access import AccessCode, UpsertToken
from cafehoppr.models.cafes import Cafe
from cafehoppr.models.enums import RATING_FIELDS, TokenType
from cafehoppr.models.users import AdminUser
from cafehoppr.schemas.tokens import CafePrefill, TokenValidation
from cafehoppr.services.schedule import format_hour

logger = logging.getLogger(__name__)


def get_access_code(db: Session) -> AccessCode:
    """Return the single access code row, seeding it from DEFAULT_ACCESS_CODE."""
    row = db.get(AccessCode, 1)
    if row is None:
        row = AccessCode(id=1, code=settings.default_access_code)
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("Access code seeded from settings")
    return row


def verify_access_code(db: Session, code: str) -> bool:
    return codes_match(get_access_code(db).code, code.strip())


def rotate_access_code(db: Session, new_code: str) -> AccessCode:
    row = get_access_code(db)
    row.code = new_code
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.commit()
    logger.info("Access code rotated")
    return row


# --- Upsert tokens ---

def issue_token(
    db: Session,
    *,
    type: TokenType,
    cafe_id: str | None = None,
    expires_in_hours: int | None = None,
) -> UpsertToken:
    hours = expires_in_hours or settings.upsert_token_exp_hours
    row = UpsertToken(
        token=generate_upsert_token(),
        type=type.value,
        cafe_id=cafe_id,
        expires_at=datetime.utcnow() + timedelta(hours=hours),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Upsert token issued: type=%s cafe=%s", row.type, cafe_id)
    return row


def find_usable_token(db: Session, token: str) -> UpsertToken | None:
    row = db.scalar(select(UpsertToken).where(UpsertToken.token == token))
    if row is None or not row.is_usable():
        return None
    return row


def consume_token(db: Session, row: UpsertToken) -> None:
    row.used_at = datetime.utcnow()
    db.add(row)
    db.commit()
    logger.info("Upsert token consumed: id=%s type=%s", row.id, row.type)


def describe_token(db: Session, row: UpsertToken) -> TokenValidation:
    prefill = None
    if row.cafe_id:
        cafe = db.get(Cafe, row.cafe_id)
        if cafe is not None:
            prefill = CafePrefill(
                name=cafe.name,
                cafe_photo=cafe.cafe_photo,
                cafe_location_link=cafe.cafe_location_link,
                operational_days=cafe.operational_days,
                opening_hour=format_hour(cafe.opening_hour) or None,
                closing_hour=format_hour(cafe.closing_hour) or None,
                location_id=cafe.location_id,
                existing_photos=[p.photo_url for p in cafe.photos],
            )
            latest = cafe.reviews[0] if cafe.reviews else None
            if row.type == TokenType.edit_cafe.value and latest is not None:
                # The edit form overwrites the latest review, so show it first.
                prefill.review = latest.review or ""
                prefill.contributor_name = latest.created_by or cafe.contributor_name
                for field in RATING_FIELDS:
                    setattr(prefill, field, getattr(latest, field) or 0)
            elif cafe.contributor_name:
                prefill.contributor_name = cafe.contributor_name
    return TokenValidation(
        is_valid=True,
        type=TokenType(row.type),
        request_id=row.id,
        expires_at=row.expires_at,
        cafe_id=row.cafe_id,
        cafe=prefill,
    )


# --- Admin login ---

class AccessDenied(Exception):
    pass


def authenticate_admin(db: Session, email: str, password: str, hobby_answer: str | None = None) -> AdminUser:
    """Check admin credentials plus the hobby answer; raise AccessDenied otherwise."""
    admin = db.scalar(select(AdminUser).where(AdminUser.email == email))
    if not admin or not verify_password(password, admin.password_hash):
        raise AccessDenied("Invalid credentials")
    if admin.hobby_answer_hash and not verify_password((hobby_answer or "").strip(), admin.hobby_answer_hash):
        logger.info("Admin login with wrong hobby answer: %s", admin.email)
        raise AccessDenied("Incorrect hobby answer")
    if not admin.is_active:
        raise AccessDenied("You are not an admin")
    logger.info("Admin logged in: %s", admin.email)
    return admin
