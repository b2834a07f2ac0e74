from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cafehoppr.core.deps import get_current_admin
from cafehoppr.core.rate_limit import rate_limit
from cafehoppr.core.security import KIND_CONTRIBUTOR, create_access_token, create_contributor_token
from cafehoppr.db.session import get_db
from cafehoppr.models.users import AdminUser
from cafehoppr.schemas.auth import (
    AccessCodeState,
    AccessCodeUpdate,
    AccessCodeVerifyRequest,
    AdminLoginRequest,
    AdminMeResponse,
    TokenResponse,
)
from cafehoppr.schemas.common import ApiResponse, ok
from cafehoppr.services.access import (
    AccessDenied,
    authenticate_admin,
    get_access_code,
    rotate_access_code,
    verify_access_code,
)

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)


@router.post(
    "/auth/login",
    response_model=ApiResponse[TokenResponse],
    dependencies=[rate_limit("auth_login", limit=10, window_seconds=60)],
)
def login(payload: AdminLoginRequest, db: Session = Depends(get_db)) -> dict:
    try:
        admin = authenticate_admin(db, payload.email, payload.password, payload.hobby_answer)
    except AccessDenied as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    return ok(TokenResponse(access_token=create_access_token(admin.id)), "Welcome back, admin!")


@router.get("/auth/me", response_model=ApiResponse[AdminMeResponse])
def me(admin: AdminUser = Depends(get_current_admin)) -> dict:
    return ok(AdminMeResponse(id=admin.id, email=admin.email, is_active=admin.is_active))


@router.post(
    "/access-code/verify",
    response_model=ApiResponse[TokenResponse],
    dependencies=[rate_limit("access_code", limit=10, window_seconds=60)],
)
def verify_code(payload: AccessCodeVerifyRequest, db: Session = Depends(get_db)) -> dict:
    if not verify_access_code(db, payload.code):
        logger.info("Access code rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access denied! Incorrect code.")
    token = create_contributor_token()
    return ok(TokenResponse(access_token=token, kind=KIND_CONTRIBUTOR), "Access granted!")


@router.get(
    "/admin/access-code",
    response_model=ApiResponse[AccessCodeState],
    dependencies=[Depends(get_current_admin)],
)
def read_access_code(db: Session = Depends(get_db)) -> dict:
    row = get_access_code(db)
    return ok(AccessCodeState(code=row.code, updated_at=row.updated_at))


@router.put(
    "/admin/access-code",
    response_model=ApiResponse[AccessCodeState],
    dependencies=[Depends(get_current_admin)],
)
def update_access_code(payload: AccessCodeUpdate, db: Session = Depends(get_db)) -> dict:
    row = rotate_access_code(db, payload.new_code)
    return ok(AccessCodeState(code=row.code, updated_at=row.updated_at), "Access code updated successfully!")
