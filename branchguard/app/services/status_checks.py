"""Commit status reporting (the source of required status check results)."""
from typing import Any, Dict, FrozenSet, List

import structlog

from .. import db
from ..models.contracts import CommitStatusRequest
from ..storage import Storage
from .permissions import Permission, require_permission
from branchguard.utils.errors import ValidationError

logger = structlog.get_logger(__name__)

PASSING_STATE = "success"


def report_status(storage: Storage, repo_id: str, sha: str, user_id: str, req: CommitStatusRequest) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.WRITE, storage)
    sha = (sha or "").strip()
    context = req.context.strip()
    if not sha:
        raise ValidationError("commit sha is required", field="sha")
    if not context:
        raise ValidationError("status context is required", field="context")

    updated_at = db.iso_z(db.now_utc())
    storage.upsert_commit_status(repo_id, sha, context, req.state, req.description, updated_at)
    logger.info("Commit status reported", repo_id=repo_id, sha=sha, context=context, state=req.state)
    return {
        "repo_id": repo_id,
        "sha": sha,
        "context": context,
        "state": req.state,
        "description": req.description,
        "updated_at": updated_at,
    }


def list_statuses(storage: Storage, repo_id: str, sha: str, user_id: str) -> List[Dict[str, Any]]:
    require_permission(repo_id, user_id, Permission.READ, storage)
    return storage.list_commit_statuses(repo_id, sha)


def passing_checks(storage: Storage, repo_id: str, sha: str | None) -> FrozenSet[str]:
    """Names of the checks currently reported as passing for *sha*."""
    if not sha:
        return frozenset()
    return frozenset(
        row["context"] for row in storage.list_commit_statuses(repo_id, sha)
        if row["state"] == PASSING_STATE
    )
