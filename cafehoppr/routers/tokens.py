from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cafehoppr.core.deps import get_current_admin
from cafehoppr.core.rate_limit import rate_limit
from cafehoppr.db.session import get_db
from cafehoppr.models.cafes import Cafe
from cafehoppr.schemas.common import ApiResponse, ok
from cafehoppr.schemas.tokens import TokenCreate, TokenIssued, TokenValidateRequest, TokenValidation
from cafehoppr.services.access import describe_token, find_usable_token, issue_token

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.post(
    "",
    response_model=ApiResponse[TokenIssued],
    status_code=201,
    dependencies=[Depends(get_current_admin)],
)
def create_token(payload: TokenCreate, db: Session = Depends(get_db)) -> dict:
    if payload.cafe_id and not db.get(Cafe, payload.cafe_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cafe not found")
    row = issue_token(db, type=payload.type, cafe_id=payload.cafe_id, expires_in_hours=payload.expires_in_hours)
    issued = TokenIssued(token=row.token, type=payload.type, cafe_id=row.cafe_id, expires_at=row.expires_at)
    return ok(issued, "Token issued")


@router.post(
    "/validate",
    response_model=ApiResponse[TokenValidation],
    dependencies=[rate_limit("tokens_validate", limit=30, window_seconds=60)],
)
def validate_token(payload: TokenValidateRequest, db: Session = Depends(get_db)) -> dict:
    row = find_usable_token(db, payload.token)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired token")
    return ok(describe_token(db, row))
