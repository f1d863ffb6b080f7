"""Pure push-authorization decisions, no storage involved."""
import itertools

import pytest

from branchguard.app.policy import (
    REASON_DELETION,
    REASON_FORCE_PUSH,
    REASON_MERGE_REQUIREMENTS,
    REASON_PULL_REQUEST,
    MergeFacts,
    PushOperation,
    decide,
    needs_merge_facts,
)


def make_rule(**overrides):
    rule = {
        "id": "rule-1",
        "pattern": "main",
        "require_pull_request": True,
        "required_reviewers": 0,
        "require_status_checks": False,
        "required_status_checks": [],
        "allow_force_push": False,
        "allow_deletion": False,
    }
    rule.update(overrides)
    return rule


@pytest.mark.parametrize("force,delete,merge", list(itertools.product([False, True], repeat=3)))
def test_unprotected_branch_allows_everything(force, delete, merge):
    decision = decide(None, PushOperation(force, delete, merge))
    assert decision.allowed is True
    assert decision.reason is None


def test_force_push_denied():
    decision = decide(make_rule(), PushOperation(is_force_push=True))
    assert decision.allowed is False
    assert decision.reason == REASON_FORCE_PUSH


def test_deletion_denied():
    decision = decide(make_rule(), PushOperation(is_deletion=True))
    assert decision.allowed is False
    assert decision.reason == REASON_DELETION


def test_force_push_checked_before_deletion():
    decision = decide(make_rule(), PushOperation(is_force_push=True, is_deletion=True))
    assert decision.reason == REASON_FORCE_PUSH


def test_force_push_cannot_be_laundered_through_pr_merge():
    decision = decide(
        make_rule(),
        PushOperation(is_force_push=True, is_pr_merge=True),
        MergeFacts(approvals=10),
    )
    assert decision.allowed is False
    assert decision.reason == REASON_FORCE_PUSH


def test_direct_push_requires_pull_request():
    decision = decide(make_rule(), PushOperation())
    assert decision.allowed is False
    assert decision.reason == REASON_PULL_REQUEST


def test_direct_push_allowed_without_pull_request_requirement():
    assert decide(make_rule(require_pull_request=False), PushOperation()).allowed is True


def test_permitted_force_push_is_not_a_direct_push():
    rule = make_rule(allow_force_push=True)
    assert decide(rule, PushOperation(is_force_push=True)).allowed is True


def test_permitted_deletion_is_not_a_direct_push():
    rule = make_rule(allow_deletion=True)
    assert decide(rule, PushOperation(is_deletion=True)).allowed is True


def test_pr_merge_without_requirements_allowed():
    assert decide(make_rule(), PushOperation(is_pr_merge=True)).allowed is True


def test_pr_merge_needs_enough_approvals():
    rule = make_rule(required_reviewers=2)
    op = PushOperation(is_pr_merge=True)

    denied = decide(rule, op, MergeFacts(approvals=1))
    assert denied.allowed is False
    assert denied.reason == REASON_MERGE_REQUIREMENTS

    assert decide(rule, op, MergeFacts(approvals=2)).allowed is True
    assert decide(rule, op, MergeFacts(approvals=3)).allowed is True


def test_pr_merge_without_facts_counts_as_no_approvals():
    decision = decide(make_rule(required_reviewers=1), PushOperation(is_pr_merge=True))
    assert decision.allowed is False


def test_pr_merge_needs_every_required_check():
    rule = make_rule(require_status_checks=True, required_status_checks=["ci/test", "ci/build"])
    op = PushOperation(is_pr_merge=True)

    assert decide(rule, op, MergeFacts(passing_checks=frozenset({"ci/test"}))).allowed is False
    assert decide(rule, op, MergeFacts(passing_checks=frozenset({"ci/test", "ci/build", "lint"}))).allowed is True


def test_status_check_names_ignored_when_flag_off():
    rule = make_rule(require_status_checks=False, required_status_checks=["ci/test"])
    assert decide(rule, PushOperation(is_pr_merge=True), MergeFacts()).allowed is True


def test_pr_merge_independent_of_force_and_deletion_flags():
    op = PushOperation(is_pr_merge=True)
    facts = MergeFacts(approvals=1)
    for force_ok, delete_ok in itertools.product([False, True], repeat=2):
        rule = make_rule(required_reviewers=1, allow_force_push=force_ok, allow_deletion=delete_ok)
        assert decide(rule, op, facts).allowed is True


class TestNeedsMergeFacts:

    def test_not_for_unprotected_or_direct(self):
        assert needs_merge_facts(None, PushOperation(is_pr_merge=True)) is False
        assert needs_merge_facts(make_rule(required_reviewers=1), PushOperation()) is False

    def test_not_when_already_denied(self):
        rule = make_rule(required_reviewers=1)
        assert needs_merge_facts(rule, PushOperation(is_pr_merge=True, is_force_push=True)) is False

    def test_only_when_rule_has_merge_requirements(self):
        op = PushOperation(is_pr_merge=True)
        assert needs_merge_facts(make_rule(), op) is False
        assert needs_merge_facts(make_rule(required_reviewers=1), op) is True
        assert needs_merge_facts(make_rule(require_status_checks=True), op) is True
