from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from cafehoppr.core.deps import WriteGrant, get_current_admin, get_write_grant
from cafehoppr.db import crud
from cafehoppr.db.session import get_db
from cafehoppr.models.enums import CafeStatus
from cafehoppr.models.users import AdminUser
from cafehoppr.routers._payload import read_payload
from cafehoppr.schemas.cafes import CafeCreate, CafeCreated, CafeListData, CafeResponse, CafeUpdate
from cafehoppr.schemas.common import ApiResponse, Pagination, ok
from cafehoppr.services import cafes as cafe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cafes", tags=["cafes"])

SortOption = Literal["newest", "rating_desc", "rating_asc", "name_asc", "name_desc"]
StatusFilter = Literal["approved", "pending", "rejected", "all"]


@router.get("", response_model=ApiResponse[CafeListData])
def list_cafes(
    db: Session = Depends(get_db),
    q: str | None = Query(default=None, max_length=200),
    location_id: str | None = Query(default=None, max_length=36),
    sort: SortOption = Query(default="newest"),
    cafe_status: StatusFilter = Query(default="approved", alias="status"),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
) -> dict:
    items, total = crud.list_cafes(
        db,
        q=q,
        location_id=location_id,
        status=None if cafe_status == "all" else cafe_status,
        sort=sort,
        page=page,
        per_page=per_page,
    )
    filters = {k: v for k, v in {"q": q, "location_id": location_id, "sort": sort, "status": cafe_status}.items() if v}
    data = CafeListData(
        cafes=[crud.cafe_to_response(c) for c in items],
        pagination=Pagination.build(page=page, per_page=per_page, total=total),
        filters_applied=filters,
    )
    return ok(data)


@router.get("/{cafe_id}", response_model=ApiResponse[CafeResponse])
def get_cafe(cafe_id: str, db: Session = Depends(get_db)) -> dict:
    cafe = crud.get_cafe(db, cafe_id, status=CafeStatus.approved.value)
    if not cafe:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cafe not found")
    return ok(crud.cafe_to_response(cafe))


@router.post("", response_model=ApiResponse[CafeCreated], status_code=201)
async def create_cafe(
    request: Request,
    grant: WriteGrant = Depends(get_write_grant),
    db: Session = Depends(get_db),
) -> dict:
    payload, uploads, _ = await read_payload(request, CafeCreate)
    created = cafe_service.submit_cafe(db, grant, payload, uploads)
    return ok(created, "Cafe created")


@router.put("/{cafe_id}", response_model=ApiResponse[CafeResponse])
async def update_cafe(
    cafe_id: str,
    request: Request,
    grant: WriteGrant = Depends(get_write_grant),
    db: Session = Depends(get_db),
) -> dict:
    payload, uploads, extra = await read_payload(request, CafeUpdate)
    cafe = cafe_service.edit_cafe(
        db, grant, cafe_id, payload, uploads, replace_photos=extra.get("replace_photos") == "true"
    )
    return ok(crud.cafe_to_response(cafe), "Cafe updated")


@router.delete("/{cafe_id}", status_code=204)
def delete_cafe(
    cafe_id: str,
    admin: AdminUser = Depends(get_current_admin),
    db: Session = Depends(get_db),
) -> Response:
    cafe_service.remove_cafe(db, cafe_id)
    logger.info("Cafe %s deleted by %s", cafe_id, admin.email)
    return Response(status_code=204)
