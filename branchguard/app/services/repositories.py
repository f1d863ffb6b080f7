"""Repositories and pull requests: the records branch protection hangs off."""
import sqlite3
from typing import Any, Dict

import structlog

from .. import db
from ..models.contracts import PullRequestCreateRequest, RepositoryCreateRequest
from ..storage import Storage
from .permissions import Permission, require_permission
from branchguard.utils.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def create_repository(storage: Storage, owner_id: str, req: RepositoryCreateRequest) -> Dict[str, Any]:
    name = req.name.strip()
    if not name:
        raise ValidationError("repository name must be non-empty", field="name")
    repo = {
        "id": db.new_id(),
        "owner_id": owner_id,
        "name": name,
        "description": req.description,
        "is_private": req.is_private,
        "created_at": db.iso_z(db.now_utc()),
    }
    try:
        storage.insert_repository(repo)
    except sqlite3.IntegrityError as exc:
        raise ConflictError(f"Repository '{name}' already exists", details={"name": name}) from exc
    logger.info("Repository created", repo_id=repo["id"], owner_id=owner_id, is_private=req.is_private)
    return storage.get_repository(repo["id"])


def get_repository(storage: Storage, repo_id: str, user_id: str) -> Dict[str, Any]:
    return require_permission(repo_id, user_id, Permission.READ, storage)


def create_pull_request(storage: Storage, repo_id: str, author_id: str, req: PullRequestCreateRequest) -> Dict[str, Any]:
    require_permission(repo_id, author_id, Permission.READ, storage)
    if not req.source_branch.strip() or not req.target_branch.strip():
        raise ValidationError("source_branch and target_branch are required")
    if req.source_branch == req.target_branch:
        raise ValidationError("source_branch and target_branch must differ", field="target_branch")

    pr = {
        "id": db.new_id(),
        "repo_id": repo_id,
        "author_id": author_id,
        "title": req.title,
        "body": req.body,
        "source_branch": req.source_branch,
        "target_branch": req.target_branch,
        "head_sha": req.head_sha,
        "base_sha": req.base_sha,
        "created_at": db.iso_z(db.now_utc()),
    }
    number = storage.insert_pull_request(pr)
    logger.info("Pull request opened", repo_id=repo_id, pr_id=pr["id"], number=number)
    return storage.get_pull_request(pr["id"])


def get_pull_request_or_404(storage: Storage, pr_id: str) -> Dict[str, Any]:
    pr = storage.get_pull_request(pr_id)
    if not pr:
        raise NotFoundError("Pull request", pr_id)
    return pr


def get_pull_request(storage: Storage, repo_id: str, pr_id: str, user_id: str) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.READ, storage)
    pr = get_pull_request_or_404(storage, pr_id)
    if pr["repo_id"] != repo_id:
        raise NotFoundError("Pull request", pr_id)
    return pr
