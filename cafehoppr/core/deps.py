from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from cafehoppr.core.config import settings
from cafehoppr.core.security import KIND_ADMIN, KIND_CONTRIBUTOR, decode_access_token
from cafehoppr.db.session import get_db
from cafehoppr.models.access import UpsertToken
from cafehoppr.models.enums import TokenType
from cafehoppr.models.users import AdminUser
from cafehoppr.services.access import find_usable_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

GRANT_ADMIN = "admin"
GRANT_CONTRIBUTOR = "contributor"
GRANT_TOKEN = "token"
GRANT_OPEN = "open"


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _admin_from_payload(payload: dict, db: Session) -> AdminUser:
    admin_id: str | None = payload.get("sub")
    if not admin_id or payload.get("kind") != KIND_ADMIN:
        raise _unauthorized()
    admin = db.get(AdminUser, admin_id)
    if not admin or not admin.is_active:
        raise _unauthorized("Admin inactive or not found")
    return admin


def admin_from_token(db: Session, token: str | None) -> AdminUser:
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise _unauthorized()
    return _admin_from_payload(payload, db)


def get_current_admin(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> AdminUser:
    return admin_from_token(db, token)


@dataclass
class WriteGrant:
    """Who is allowed to perform a mutating request."""

    kind: str
    upsert_token: UpsertToken | None = None

    @property
    def is_admin(self) -> bool:
        return self.kind == GRANT_ADMIN

    def allows(self, operation: TokenType, *, cafe_id: str | None = None) -> bool:
        if self.kind != GRANT_TOKEN:
            return True
        row = self.upsert_token
        if row is None:
            return False
        if operation == TokenType.add_review:
            # Any cafe-bound token may also leave a review for that cafe.
            return row.cafe_id is not None and row.cafe_id == cafe_id
        if row.type != operation.value:
            return False
        if operation == TokenType.edit_cafe:
            return row.cafe_id == cafe_id
        return True


def resolve_write_grant(db: Session, token: str | None) -> WriteGrant:
    """Turn a bearer value into a write grant.

    The value may be an admin JWT, a contributor JWT (from the access code) or an
    opaque upsert token. Raises HTTPException 401 when none of them matches.
    """
    if not token:
        if settings.require_write_token:
            raise _unauthorized("Authorization token required")
        return WriteGrant(kind=GRANT_OPEN)

    try:
        payload = decode_access_token(token)
    except JWTError:
        payload = None

    if payload is not None:
        if payload.get("kind") == KIND_CONTRIBUTOR:
            return WriteGrant(kind=GRANT_CONTRIBUTOR)
        _admin_from_payload(payload, db)
        return WriteGrant(kind=GRANT_ADMIN)

    row = find_usable_token(db, token)
    if row is None:
        logger.info("Rejected write with unknown or expired token")
        raise _unauthorized("Invalid or expired token")
    return WriteGrant(kind=GRANT_TOKEN, upsert_token=row)


def get_write_grant(
    token: str | None = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> WriteGrant:
    return resolve_write_grant(db, token)


def require_grant(grant: WriteGrant, operation: TokenType, *, cafe_id: str | None = None) -> None:
    if not grant.allows(operation, cafe_id=cafe_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token does not allow this operation")
