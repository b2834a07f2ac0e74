from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cafehoppr.core.deps import get_current_admin
from cafehoppr.db import crud
from cafehoppr.db.session import get_db
from cafehoppr.schemas.common import ApiResponse, ok
from cafehoppr.schemas.locations import LocationCreate, LocationListData, LocationResponse

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=ApiResponse[LocationListData])
def list_locations(db: Session = Depends(get_db)) -> dict:
    locations = crud.list_locations(db)
    return ok(LocationListData(locations=[crud.location_to_response(loc) for loc in locations]))


@router.post(
    "",
    response_model=ApiResponse[LocationResponse],
    status_code=201,
    dependencies=[Depends(get_current_admin)],
)
def create_location(payload: LocationCreate, db: Session = Depends(get_db)) -> dict:
    try:
        loc = crud.create_location(db, payload)
    except crud.DuplicateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return ok(crud.location_to_response(loc), "Location created")
