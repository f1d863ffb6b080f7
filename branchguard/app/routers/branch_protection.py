from typing import List

from fastapi import APIRouter, Depends, Query

from .auth import verify_api_key
from .. import storage as storage_manager
from ..models.contracts import (
    BranchProtectionRule,
    CanPushRequest,
    CanPushResponse,
    DeleteResponse,
    ProtectionCheckResponse,
    RuleCreateRequest,
    RuleUpdateRequest,
)
from ..services import push_auth, resolver, rules

router = APIRouter(prefix="/v1/repos/{repo_id}/branch-protection", tags=["Branch Protection"])


@router.post("", response_model=BranchProtectionRule, status_code=201)
def create_rule(repo_id: str, body: RuleCreateRequest, user_id: str = Depends(verify_api_key)):
    """Create a protection rule. Requires admin."""
    storage = storage_manager.get_storage()
    return rules.create_rule(storage, repo_id, user_id, body)


@router.get("", response_model=List[BranchProtectionRule])
def list_rules(repo_id: str, user_id: str = Depends(verify_api_key)):
    """List the repository's rules in creation order. Requires write."""
    storage = storage_manager.get_storage()
    return rules.list_rules(storage, repo_id, user_id)


# check and can-push are declared before /{rule_id} so they are not captured by it

@router.get("/check", response_model=ProtectionCheckResponse)
def check_branch(
    repo_id: str,
    branch: str = Query(..., min_length=1),
    user_id: str = Depends(verify_api_key),
):
    """Report whether *branch* is protected and by which rule. Requires read."""
    storage = storage_manager.get_storage()
    return resolver.check(storage, repo_id, branch, user_id)


@router.post("/can-push", response_model=CanPushResponse)
def can_push(repo_id: str, body: CanPushRequest, user_id: str = Depends(verify_api_key)):
    """Decide whether a push, force push, deletion or PR merge may proceed. Requires write."""
    storage = storage_manager.get_storage()
    decision = push_auth.can_push(
        storage,
        repo_id,
        body.branch,
        user_id,
        is_force_push=body.is_force_push,
        is_deletion=body.is_deletion,
        is_pr_merge=body.is_pr_merge,
        pr_id=body.pr_id,
    )
    return decision.as_dict()


@router.get("/{rule_id}", response_model=BranchProtectionRule)
def get_rule(repo_id: str, rule_id: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return rules.get_rule(storage, rule_id, repo_id, user_id)


@router.patch("/{rule_id}", response_model=BranchProtectionRule)
def update_rule(repo_id: str, rule_id: str, body: RuleUpdateRequest, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return rules.update_rule(storage, rule_id, repo_id, user_id, body)


@router.delete("/{rule_id}", response_model=DeleteResponse)
def delete_rule(repo_id: str, rule_id: str, user_id: str = Depends(verify_api_key)):
    storage = storage_manager.get_storage()
    return {"success": rules.delete_rule(storage, rule_id, repo_id, user_id)}
