"""Branch protection rule store.

Rules belong to exactly one repository. ``(repo_id, pattern)`` is unique and
enforced by the database index, so two concurrent creates for the same
pattern resolve to one success and one ConflictError.
"""
import sqlite3
from typing import Any, Dict, Iterable, List

import structlog

from .. import db
from ..metrics import record_rule_mutation
from ..models.contracts import RuleCreateRequest, RuleUpdateRequest
from ..storage import Storage
from .matcher import pattern_problem
from .permissions import Permission, require_permission
from branchguard.utils.errors import ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

MIN_REQUIRED_REVIEWERS = 0
MAX_REQUIRED_REVIEWERS = 10


def validate_pattern(pattern: str) -> str:
    problem = pattern_problem(pattern)
    if problem:
        raise ValidationError(problem, field="pattern")
    return pattern


def validate_required_reviewers(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("required_reviewers must be an integer", field="required_reviewers")
    if not MIN_REQUIRED_REVIEWERS <= value <= MAX_REQUIRED_REVIEWERS:
        raise ValidationError(
            f"required_reviewers must be between {MIN_REQUIRED_REVIEWERS} and {MAX_REQUIRED_REVIEWERS}",
            field="required_reviewers",
            details={"value": value},
        )
    return value


def normalize_status_checks(names: Iterable[str]) -> List[str]:
    """Strip names and drop duplicates, keeping first-seen order."""
    seen: List[str] = []
    for name in names or []:
        name = (name or "").strip()
        if not name:
            raise ValidationError("status check names must be non-empty", field="required_status_checks")
        if name not in seen:
            seen.append(name)
    return seen


def verify_rule_ownership(rule_id: str, repo_id: str, storage: Storage) -> Dict[str, Any]:
    """
    Load a rule, insisting it belongs to *repo_id*.

    A rule that exists under another repository is reported exactly like a
    missing one so ids cannot be probed across repositories.
    """
    rule = storage.get_rule(rule_id)
    if not rule:
        raise NotFoundError("Branch protection rule", rule_id)
    if rule["repo_id"] != repo_id:
        logger.warning(
            "Cross-repository rule access",
            rule_id=rule_id,
            requested_repo_id=repo_id,
        )
        raise NotFoundError("Branch protection rule", rule_id)
    return rule


def create_rule(storage: Storage, repo_id: str, user_id: str, req: RuleCreateRequest) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.ADMIN, storage)

    pattern = validate_pattern(req.pattern)
    required_reviewers = validate_required_reviewers(req.required_reviewers)
    checks = normalize_status_checks(req.required_status_checks)

    now = db.iso_z(db.now_utc())
    rule = {
        "id": db.new_id(),
        "repo_id": repo_id,
        "pattern": pattern,
        "require_pull_request": req.require_pull_request,
        "required_reviewers": required_reviewers,
        "require_status_checks": req.require_status_checks,
        "required_status_checks": checks,
        "allow_force_push": req.allow_force_push,
        "allow_deletion": req.allow_deletion,
        "created_at": now,
        "updated_at": now,
    }
    try:
        storage.insert_rule(rule)
    except sqlite3.IntegrityError as exc:
        raise ConflictError(
            f"A protection rule for pattern '{pattern}' already exists",
            details={"repo_id": repo_id, "pattern": pattern},
        ) from exc

    record_rule_mutation("create")
    logger.info("Protection rule created", repo_id=repo_id, rule_id=rule["id"], pattern=pattern, user_id=user_id)
    return storage.get_rule(rule["id"])


def list_rules(storage: Storage, repo_id: str, user_id: str) -> List[Dict[str, Any]]:
    require_permission(repo_id, user_id, Permission.WRITE, storage)
    return storage.list_rules(repo_id)


def get_rule(storage: Storage, rule_id: str, repo_id: str, user_id: str) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.WRITE, storage)
    return verify_rule_ownership(rule_id, repo_id, storage)


def update_rule(storage: Storage, rule_id: str, repo_id: str, user_id: str, req: RuleUpdateRequest) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.ADMIN, storage)
    current = verify_rule_ownership(rule_id, repo_id, storage)

    fields = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    if "pattern" in fields:
        validate_pattern(fields["pattern"])
    if "required_reviewers" in fields:
        validate_required_reviewers(fields["required_reviewers"])
    if "required_status_checks" in fields:
        fields["required_status_checks"] = normalize_status_checks(fields["required_status_checks"])

    if not fields:
        return current

    try:
        updated = storage.update_rule(rule_id, repo_id, fields, db.iso_z(db.now_utc()))
    except sqlite3.IntegrityError as exc:
        raise ConflictError(
            f"A protection rule for pattern '{fields.get('pattern')}' already exists",
            details={"repo_id": repo_id, "pattern": fields.get("pattern")},
        ) from exc
    if not updated:
        # deleted by a concurrent caller between the ownership check and the write
        raise NotFoundError("Branch protection rule", rule_id)

    record_rule_mutation("update")
    logger.info("Protection rule updated", repo_id=repo_id, rule_id=rule_id, fields=sorted(fields), user_id=user_id)
    return storage.get_rule(rule_id)


def delete_rule(storage: Storage, rule_id: str, repo_id: str, user_id: str) -> bool:
    require_permission(repo_id, user_id, Permission.ADMIN, storage)
    verify_rule_ownership(rule_id, repo_id, storage)
    if not storage.delete_rule(rule_id, repo_id):
        raise NotFoundError("Branch protection rule", rule_id)

    record_rule_mutation("delete")
    logger.info("Protection rule deleted", repo_id=repo_id, rule_id=rule_id, user_id=user_id)
    return True
