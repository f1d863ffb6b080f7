"""Push authorization policy.

``decide`` is a pure function: it sees only the resolved rule, the operation
descriptor and the merge facts gathered by the caller, and never touches
storage.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

REASON_FORCE_PUSH = "force push not allowed on protected branch"
REASON_DELETION = "deletion not allowed on protected branch"
REASON_PULL_REQUEST = "direct push requires a pull request"
REASON_MERGE_REQUIREMENTS = "required reviews/status checks not satisfied"


@dataclass(frozen=True)
class PushOperation:
    is_force_push: bool = False
    is_deletion: bool = False
    is_pr_merge: bool = False


@dataclass(frozen=True)
class MergeFacts:
    """Review and status-check state of the pull request being merged."""
    approvals: int = 0
    passing_checks: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class PushDecision:
    allowed: bool
    reason: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"allowed": self.allowed, "reason": self.reason}


ALLOW = PushDecision(allowed=True)


def merge_requirements_met(rule: Dict[str, Any], facts: MergeFacts) -> bool:
    if facts.approvals < int(rule.get("required_reviewers") or 0):
        return False
    if rule.get("require_status_checks"):
        required = rule.get("required_status_checks") or []
        if any(name not in facts.passing_checks for name in required):
            return False
    return True


def decide(rule: Optional[Dict[str, Any]], op: PushOperation, facts: Optional[MergeFacts] = None) -> PushDecision:
    """Return the allow/deny decision for *op* against *rule*.

    Force-push and deletion prohibitions are checked before anything else,
    whatever ``is_pr_merge`` says.
    """
    if rule is None:
        return ALLOW

    if op.is_force_push and not rule.get("allow_force_push"):
        return PushDecision(False, REASON_FORCE_PUSH)
    if op.is_deletion and not rule.get("allow_deletion"):
        return PushDecision(False, REASON_DELETION)

    # a force push or deletion the rule explicitly permits is not a "direct push"
    exempted = op.is_force_push or op.is_deletion
    if rule.get("require_pull_request") and not op.is_pr_merge and not exempted:
        return PushDecision(False, REASON_PULL_REQUEST)

    if op.is_pr_merge and not merge_requirements_met(rule, facts or MergeFacts()):
        return PushDecision(False, REASON_MERGE_REQUIREMENTS)

    return ALLOW


def needs_merge_facts(rule: Optional[Dict[str, Any]], op: PushOperation) -> bool:
    """True when ``decide`` would consult merge facts for this rule and operation."""
    if rule is None or not op.is_pr_merge:
        return False
    if op.is_force_push and not rule.get("allow_force_push"):
        return False
    if op.is_deletion and not rule.get("allow_deletion"):
        return False
    return bool(rule.get("required_reviewers")) or bool(rule.get("require_status_checks"))
