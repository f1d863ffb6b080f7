from typing import List

from fastapi import APIRouter, Depends

from .auth import verify_api_key
from .. import storage as storage_manager
from ..models.contracts import (
    CommitStatus,
    CommitStatusRequest,
    PullRequest,
    PullRequestCreateRequest,
    Repository,
    RepositoryCreateRequest,
)
from ..services import repositories, status_checks

router = APIRouter(prefix="/v1/repos", tags=["Repositories"])


@router.post("", response_model=Repository, status_code=201)
def create_repository(body: RepositoryCreateRequest, user_id: str = Depends(verify_api_key)):
    """Create a repository owned by the caller."""
    storage = storage_manager.get_storage()
    return repositories.create_repository(storage, user_id, body)


@router.get("/{repo_id}", response_model=Repository)
def get_repository(repo_id: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return repositories.get_repository(storage, repo_id, user_id)


@router.post("/{repo_id}/pulls", response_model=PullRequest, status_code=201)
def create_pull_request(repo_id: str, body: PullRequestCreateRequest, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return repositories.create_pull_request(storage, repo_id, user_id, body)


@router.get("/{repo_id}/pulls/{pr_id}", response_model=PullRequest)
def get_pull_request(repo_id: str, pr_id: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return repositories.get_pull_request(storage, repo_id, pr_id, user_id)


@router.post("/{repo_id}/statuses/{sha}", response_model=CommitStatus, status_code=201)
def report_status(repo_id: str, sha: str, body: CommitStatusRequest, user_id: str = Depends(verify_api_key)):
    """Record the latest state of a status check for a commit. Requires write."""
    storage = storage_manager.get_storage()
    return status_checks.report_status(storage, repo_id, sha, user_id, body)


@router.get("/{repo_id}/statuses/{sha}", response_model=List[CommitStatus])
def list_statuses(repo_id: str, sha: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return status_checks.list_statuses(storage, repo_id, sha, user_id)
