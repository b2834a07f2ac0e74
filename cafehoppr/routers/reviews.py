from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from cafehoppr.core.deps import WriteGrant, get_write_grant
from cafehoppr.db import crud
from cafehoppr.db.session import get_db
from cafehoppr.models.cafes import Cafe
from cafehoppr.schemas.common import ApiResponse, ContributorList, ok
from cafehoppr.schemas.reviews import ReviewCreate, ReviewListData, ReviewResponse, ReviewUpdate
from cafehoppr.services import cafes as cafe_service

router = APIRouter(tags=["reviews"])


@router.get("/cafes/{cafe_id}/reviews", response_model=ApiResponse[ReviewListData])
def list_reviews(cafe_id: str, db: Session = Depends(get_db)) -> dict:
    if not db.get(Cafe, cafe_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cafe not found")
    reviews = crud.list_reviews(db, cafe_id)
    return ok(ReviewListData(reviews=[crud.review_to_response(r) for r in reviews]))


@router.post("/reviews", response_model=ApiResponse[ReviewResponse], status_code=201)
def create_review(
    payload: ReviewCreate,
    grant: WriteGrant = Depends(get_write_grant),
    db: Session = Depends(get_db),
) -> dict:
    review = cafe_service.submit_review(db, grant, payload)
    return ok(crud.review_to_response(review), "Review created")


@router.put("/reviews/{review_id}", response_model=ApiResponse[ReviewResponse])
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    grant: WriteGrant = Depends(get_write_grant),
    db: Session = Depends(get_db),
) -> dict:
    review = cafe_service.edit_review(db, grant, review_id, payload)
    return ok(crud.review_to_response(review), "Review updated")


@router.get("/contributors", response_model=ApiResponse[ContributorList])
def list_contributors(db: Session = Depends(get_db)) -> dict:
    return ok(ContributorList(contributors=crud.list_contributors(db)))
