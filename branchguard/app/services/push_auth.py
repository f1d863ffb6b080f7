"""Push authorization: gather the facts, then defer to the pure policy."""
from typing import Any, Dict, Optional

import structlog

from ..metrics import record_push_decision, time_decision
from ..policy import MergeFacts, PushDecision, PushOperation, decide, needs_merge_facts
from ..storage import Storage
from .permissions import Permission, require_permission
from .repositories import get_pull_request_or_404
from .resolver import resolve
from .reviews import approval_count
from .status_checks import passing_checks
from branchguard.utils.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def load_merging_pull_request(storage: Storage, repo_id: str, branch: str, pr_id: str) -> Dict[str, Any]:
    """The pull request being merged, which must live in *repo_id* and target *branch*."""
    pr = get_pull_request_or_404(storage, pr_id)
    if pr["repo_id"] != repo_id:
        raise NotFoundError("Pull request", pr_id)
    if pr["target_branch"] != branch:
        raise ValidationError(
            f"Pull request targets '{pr['target_branch']}', not '{branch}'",
            field="pr_id",
        )
    return pr


def gather_merge_facts(storage: Storage, pr: Optional[Dict[str, Any]]) -> MergeFacts:
    """Approvals and passing checks for *pr*.

    Without a pull request there is nothing to count, so the facts are empty.
    """
    if not pr:
        return MergeFacts()
    return MergeFacts(
        approvals=approval_count(storage, pr),
        passing_checks=passing_checks(storage, pr["repo_id"], pr.get("head_sha")),
    )


def can_push(
    storage: Storage,
    repo_id: str,
    branch: str,
    user_id: str,
    is_force_push: bool = False,
    is_deletion: bool = False,
    is_pr_merge: bool = False,
    pr_id: Optional[str] = None,
) -> PushDecision:
    require_permission(repo_id, user_id, Permission.WRITE, storage)
    if not branch:
        raise ValidationError("branch is required", field="branch")

    with time_decision():
        op = PushOperation(is_force_push=is_force_push, is_deletion=is_deletion, is_pr_merge=is_pr_merge)
        pr = load_merging_pull_request(storage, repo_id, branch, pr_id) if is_pr_merge and pr_id else None
        rule = resolve(storage, repo_id, branch)
        facts = gather_merge_facts(storage, pr) if needs_merge_facts(rule, op) else None
        decision = decide(rule, op, facts)

    record_push_decision(decision.allowed, decision.reason)
    if not decision.allowed:
        logger.info(
            "Push denied",
            repo_id=repo_id,
            branch=branch,
            rule_id=rule["id"] if rule else None,
            reason=decision.reason,
            user_id=user_id,
        )
    return decision
