"""Review request tracking.

A request for ``(pr_id, reviewer_id)`` starts ``pending`` and becomes
``completed`` once that reviewer submits any review on the pull request,
whatever the review's verdict. Every transition is a single statement (or a
single transaction for review submission) keyed by the pair.
"""
from typing import Any, Dict, List

import structlog

from .. import db
from ..models.contracts import ReviewCreateRequest
from ..storage import Storage
from .permissions import Permission, get_repository_or_404, permission_for, permission_of, require_permission
from .repositories import get_pull_request_or_404
from branchguard.utils.errors import AuthorizationError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

PENDING = "pending"
COMPLETED = "completed"


def _require_author_or_writer(storage: Storage, pr: Dict[str, Any], user_id: str) -> None:
    if pr["author_id"] == user_id:
        # the author still needs to see the repository
        require_permission(pr["repo_id"], user_id, Permission.READ, storage)
        return
    level = permission_of(pr["repo_id"], user_id, storage)
    if not level.at_least(Permission.WRITE):
        logger.warning("Review request change denied", pr_id=pr["id"], user_id=user_id, actual=level.value)
        raise AuthorizationError(
            "Only the pull request author or a writer may manage review requests",
            required=Permission.WRITE.value,
            actual=level.value,
        )


def request_review(storage: Storage, pr_id: str, reviewer_id: str, user_id: str) -> Dict[str, Any]:
    pr = get_pull_request_or_404(storage, pr_id)
    _require_author_or_writer(storage, pr, user_id)

    if not storage.get_user(reviewer_id):
        raise NotFoundError("User", reviewer_id)
    if reviewer_id == pr["author_id"]:
        raise ValidationError("The pull request author cannot review their own pull request", field="reviewer_id")

    storage.upsert_review_request(pr_id, reviewer_id, user_id, db.iso_z(db.now_utc()))
    logger.info("Review requested", pr_id=pr_id, reviewer_id=reviewer_id, requested_by=user_id)
    return storage.get_review_request(pr_id, reviewer_id)


def remove_review_request(storage: Storage, pr_id: str, reviewer_id: str, user_id: str) -> bool:
    """Delete the request whatever its state; False when there was nothing to delete."""
    pr = get_pull_request_or_404(storage, pr_id)
    _require_author_or_writer(storage, pr, user_id)

    removed = storage.delete_review_request(pr_id, reviewer_id)
    logger.info("Review request removed", pr_id=pr_id, reviewer_id=reviewer_id, removed=removed)
    return removed


def list_reviewers(storage: Storage, pr_id: str, user_id: str) -> List[Dict[str, Any]]:
    pr = get_pull_request_or_404(storage, pr_id)
    require_permission(pr["repo_id"], user_id, Permission.READ, storage)
    return storage.list_review_requests(pr_id)


def submit_review(storage: Storage, pr_id: str, reviewer_id: str, req: ReviewCreateRequest) -> Dict[str, Any]:
    pr = get_pull_request_or_404(storage, pr_id)
    require_permission(pr["repo_id"], reviewer_id, Permission.READ, storage)

    review = {
        "id": db.new_id(),
        "pr_id": pr_id,
        "reviewer_id": reviewer_id,
        "state": req.state,
        "body": req.body,
        "commit_sha": req.commit_sha or pr.get("head_sha"),
        "created_at": db.iso_z(db.now_utc()),
    }
    completed = storage.insert_review(review)
    logger.info(
        "Review submitted",
        pr_id=pr_id,
        reviewer_id=reviewer_id,
        state=req.state,
        request_completed=completed,
    )
    return review


def list_reviews(storage: Storage, pr_id: str, user_id: str) -> List[Dict[str, Any]]:
    pr = get_pull_request_or_404(storage, pr_id)
    require_permission(pr["repo_id"], user_id, Permission.READ, storage)
    return storage.list_reviews(pr_id)


def approval_count(storage: Storage, pr: Dict[str, Any]) -> int:
    """Approvals that count towards a merge of *pr*.

    The author's own approval never counts. Any other approver counts once
    their review request is completed or when they hold write on the
    repository.
    """
    repo = get_repository_or_404(storage, pr["repo_id"])
    completed = {
        request["reviewer_id"] for request in storage.list_review_requests(pr["id"])
        if request["state"] == COMPLETED
    }
    count = 0
    for reviewer_id in storage.list_approving_reviewers(pr["id"]):
        if reviewer_id == pr["author_id"]:
            continue
        if reviewer_id in completed or permission_for(repo, reviewer_id, storage).at_least(Permission.WRITE):
            count += 1
    return count
