from abc import ABC, abstractmethod
import json
import os
from typing import Dict, Any, List, Optional

from . import db

_RULE_FLAGS = ("require_pull_request", "require_status_checks", "allow_force_push", "allow_deletion")


def _decode_rule(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    rule = dict(row)
    for flag in _RULE_FLAGS:
        rule[flag] = bool(rule.get(flag))
    raw = rule.get("required_status_checks") or "[]"
    rule["required_status_checks"] = json.loads(raw) if isinstance(raw, str) else list(raw)
    return rule


def _decode_repo(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    repo = dict(row)
    repo["is_private"] = bool(repo.get("is_private"))
    return repo


class Storage(ABC):
    # --- rules ---
    @abstractmethod
    def insert_rule(self, rule: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def get_rule(self, rule_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_rules(self, repo_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def update_rule(self, rule_id: str, repo_id: str, fields: Dict[str, Any], updated_at: str) -> bool:
        pass

    @abstractmethod
    def delete_rule(self, rule_id: str, repo_id: str) -> bool:
        pass

    # --- repositories / permissions ---
    @abstractmethod
    def insert_repository(self, repo: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def get_repository(self, repo_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def get_collaborator_permission(self, repo_id: str, user_id: str) -> Optional[str]:
        pass

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    # --- pull requests / reviews ---
    @abstractmethod
    def insert_pull_request(self, pr: Dict[str, Any]) -> int:
        pass

    @abstractmethod
    def get_pull_request(self, pr_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def upsert_review_request(self, pr_id: str, reviewer_id: str, requested_by: str, requested_at: str) -> None:
        pass

    @abstractmethod
    def get_review_request(self, pr_id: str, reviewer_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_review_requests(self, pr_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def delete_review_request(self, pr_id: str, reviewer_id: str) -> bool:
        pass

    @abstractmethod
    def insert_review(self, review: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def list_reviews(self, pr_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_approving_reviewers(self, pr_id: str) -> List[str]:
        pass

    # --- commit statuses ---
    @abstractmethod
    def upsert_commit_status(self, repo_id: str, sha: str, context: str, state: str,
                             description: Optional[str], updated_at: str) -> None:
        pass

    @abstractmethod
    def list_commit_statuses(self, repo_id: str, sha: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def ping(self) -> None:
        pass


class SqliteStorage(Storage):
    def insert_rule(self, rule: Dict[str, Any]) -> None:
        db.insert_rule(rule)

    def get_rule(self, rule_id: str) -> Optional[Dict[str, Any]]:
        return _decode_rule(db.get_rule(rule_id))

    def list_rules(self, repo_id: str) -> List[Dict[str, Any]]:
        return [_decode_rule(r) for r in db.list_rules(repo_id)]

    def update_rule(self, rule_id: str, repo_id: str, fields: Dict[str, Any], updated_at: str) -> bool:
        return db.update_rule(rule_id, repo_id, fields, updated_at) > 0

    def delete_rule(self, rule_id: str, repo_id: str) -> bool:
        return db.delete_rule(rule_id, repo_id) > 0

    def insert_repository(self, repo: Dict[str, Any]) -> None:
        db.insert_repository(repo)

    def get_repository(self, repo_id: str) -> Optional[Dict[str, Any]]:
        return _decode_repo(db.get_repository(repo_id))

    def get_collaborator_permission(self, repo_id: str, user_id: str) -> Optional[str]:
        return db.get_collaborator_permission(repo_id, user_id)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return db.get_user(user_id)

    def insert_pull_request(self, pr: Dict[str, Any]) -> int:
        return db.insert_pull_request(pr)

    def get_pull_request(self, pr_id: str) -> Optional[Dict[str, Any]]:
        return db.get_pull_request(pr_id)

    def upsert_review_request(self, pr_id: str, reviewer_id: str, requested_by: str, requested_at: str) -> None:
        db.upsert_review_request(pr_id, reviewer_id, requested_by, requested_at)

    def get_review_request(self, pr_id: str, reviewer_id: str) -> Optional[Dict[str, Any]]:
        return db.get_review_request(pr_id, reviewer_id)

    def list_review_requests(self, pr_id: str) -> List[Dict[str, Any]]:
        return db.list_review_requests(pr_id)

    def delete_review_request(self, pr_id: str, reviewer_id: str) -> bool:
        return db.delete_review_request(pr_id, reviewer_id) > 0

    def insert_review(self, review: Dict[str, Any]) -> bool:
        return db.insert_review(review) > 0

    def list_reviews(self, pr_id: str) -> List[Dict[str, Any]]:
        return db.list_reviews(pr_id)

    def list_approving_reviewers(self, pr_id: str) -> List[str]:
        return db.list_approving_reviewers(pr_id)

    def upsert_commit_status(self, repo_id: str, sha: str, context: str, state: str,
                             description: Optional[str], updated_at: str) -> None:
        db.upsert_commit_status(repo_id, sha, context, state, description, updated_at)

    def list_commit_statuses(self, repo_id: str, sha: str) -> List[Dict[str, Any]]:
        return db.list_commit_statuses(repo_id, sha)

    def ping(self) -> None:
        db.fetchone("SELECT 1 AS ok")


# Global storage instance, initialized lazily or on app startup
storage: Storage = None

def get_storage() -> Storage:
    global storage
    if storage is None:
        sqlite_path = os.getenv("BG_SQLITE_PATH")
        if sqlite_path:
            db.reload_db_path(sqlite_path)
        storage = SqliteStorage()
    return storage

def reset_storage() -> None:
    """Drop the cached instance so the next get_storage() re-reads the environment."""
    global storage
    storage = None
