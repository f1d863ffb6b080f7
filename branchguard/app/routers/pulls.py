from typing import List

from fastapi import APIRouter, Depends

from .auth import verify_api_key
from .. import storage as storage_manager
from ..models.contracts import (
    RemoveReviewRequestResponse,
    Review,
    ReviewCreateRequest,
    ReviewRequest,
    ReviewRequestCreate,
)
from ..services import reviews

router = APIRouter(prefix="/v1/pulls/{pr_id}", tags=["Reviews"])


@router.post("/review-requests", response_model=ReviewRequest, status_code=201)
def request_review(pr_id: str, body: ReviewRequestCreate, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return reviews.request_review(storage, pr_id, body.reviewer_id, user_id)


@router.delete("/review-requests/{reviewer_id}", response_model=RemoveReviewRequestResponse)
def remove_review_request(pr_id: str, reviewer_id: str, user_id: str = Depends(verify_api_key)):
    """Remove a review request; ``removed`` is false when none existed."""
    storage = storage_manager.get_storage()
    return {"removed": reviews.remove_review_request(storage, pr_id, reviewer_id, user_id)}


@router.get("/reviewers", response_model=List[ReviewRequest])
def list_reviewers(pr_id: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return reviews.list_reviewers(storage, pr_id, user_id)


@router.post("/reviews", response_model=Review, status_code=201)
def submit_review(pr_id: str, body: ReviewCreateRequest, user_id: str = Depends(verify_api_key)):
    """Submit a review as the caller; completes the caller's pending review request."""
    storage = storage_manager.get_storage()
    return reviews.submit_review(storage, pr_id, user_id, body)


@router.get("/reviews", response_model=List[Review])
def list_reviews(pr_id: str, user_id: str = Depends(verify_api_key)):
    """All reviews submitted on the pull request, oldest first."""
    storage = storage_manager.get_storage()
    return reviews.list_reviews(storage, pr_id, user_id)
