"""Repository permission resolution.

Callers pass the acting user explicitly; there is no ambient session.
"""
from enum import Enum
from typing import Any, Dict

import structlog

from ..storage import Storage
from branchguard.utils.errors import AuthorizationError, NotFoundError

logger = structlog.get_logger(__name__)


class Permission(str, Enum):
    NONE = "none"
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def at_least(self, other: "Permission") -> bool:
        return self.rank >= other.rank


_RANK = {
    Permission.NONE: 0,
    Permission.READ: 1,
    Permission.WRITE: 2,
    Permission.ADMIN: 3,
    Permission.OWNER: 4,
}


def get_repository_or_404(storage: Storage, repo_id: str) -> Dict[str, Any]:
    repo = storage.get_repository(repo_id)
    if not repo:
        raise NotFoundError("Repository", repo_id)
    return repo


def permission_for(repo: Dict[str, Any], user_id: str, storage: Storage) -> Permission:
    if user_id and repo["owner_id"] == user_id:
        return Permission.OWNER
    if user_id:
        level = storage.get_collaborator_permission(repo["id"], user_id)
        if level:
            return Permission(level)
    if not repo.get("is_private"):
        return Permission.READ
    return Permission.NONE


def permission_of(repo_id: str, user_id: str, storage: Storage) -> Permission:
    """Permission level of *user_id* on *repo_id*; NotFound if the repository is missing."""
    repo = get_repository_or_404(storage, repo_id)
    return permission_for(repo, user_id, storage)


def require_permission(repo_id: str, user_id: str, required: Permission, storage: Storage) -> Dict[str, Any]:
    """Return the repository record if *user_id* holds at least *required* on it."""
    repo = get_repository_or_404(storage, repo_id)
    actual = permission_for(repo, user_id, storage)
    if not actual.at_least(required):
        logger.warning(
            "Permission denied",
            repo_id=repo_id,
            user_id=user_id,
            required=required.value,
            actual=actual.value,
        )
        raise AuthorizationError(
            f"{required.value} permission required on repository",
            required=required.value,
            actual=actual.value,
        )
    return repo
