"""Resolve the single protection rule that governs a branch."""
from typing import Any, Dict, List, Optional

from ..storage import Storage
from .matcher import matches, wildcard_count
from .permissions import Permission, require_permission


def select_rule(rules: List[Dict[str, Any]], branch: str) -> Optional[Dict[str, Any]]:
    """Pick the governing rule among *rules* for *branch*.

    When several patterns match, the one with the fewest wildcard segments
    wins, then the earliest ``created_at``, then list position. *rules* is
    expected in store order (creation order).
    """
    candidates = [
        (wildcard_count(rule["pattern"]), rule.get("created_at") or "", position, rule)
        for position, rule in enumerate(rules)
        if matches(rule["pattern"], branch)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda c: c[:3])[3]


def resolve(storage: Storage, repo_id: str, branch: str) -> Optional[Dict[str, Any]]:
    return select_rule(storage.list_rules(repo_id), branch)


def check(storage: Storage, repo_id: str, branch: str, user_id: str) -> Dict[str, Any]:
    require_permission(repo_id, user_id, Permission.READ, storage)
    rule = resolve(storage, repo_id, branch)
    return {"protected": rule is not None, "rule": rule}
