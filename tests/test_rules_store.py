from concurrent.futures import ThreadPoolExecutor

import pytest

from branchguard.app.models.contracts import RuleCreateRequest, RuleUpdateRequest
from branchguard.app.services import rules
from branchguard.app.services.permissions import Permission
from branchguard.utils.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


def create(storage, repo, user, pattern="main", **kwargs):
    kwargs.setdefault("require_pull_request", True)
    return rules.create_rule(storage, repo["id"], user["user_id"], RuleCreateRequest(pattern=pattern, **kwargs))


class TestCreate:

    def test_create_then_get_round_trip(self, storage, repo, owner):
        created = create(
            storage, repo, owner,
            pattern="release/*",
            required_reviewers=2,
            require_status_checks=True,
            required_status_checks=["ci/test", "ci/build"],
        )
        fetched = rules.get_rule(storage, created["id"], repo["id"], owner["user_id"])

        assert fetched == created
        assert fetched["repo_id"] == repo["id"]
        assert fetched["required_status_checks"] == ["ci/test", "ci/build"]
        assert fetched["allow_force_push"] is False
        assert fetched["allow_deletion"] is False
        assert fetched["created_at"] == fetched["updated_at"]

    def test_defaults(self, storage, repo, owner):
        rule = create(storage, repo, owner)
        assert rule["required_reviewers"] == 0
        assert rule["require_status_checks"] is False
        assert rule["required_status_checks"] == []

    def test_duplicate_pattern_conflicts(self, storage, repo, owner):
        create(storage, repo, owner, pattern="main")
        with pytest.raises(ConflictError):
            create(storage, repo, owner, pattern="main", require_pull_request=False)

    def test_same_pattern_allowed_in_other_repository(self, storage, repo, owner, make_repo):
        other = make_repo(owner["user_id"], name="other")
        create(storage, repo, owner, pattern="main")
        assert create(storage, other, owner, pattern="main")["repo_id"] == other["id"]

    def test_pattern_uniqueness_is_case_sensitive(self, storage, repo, owner):
        create(storage, repo, owner, pattern="main")
        assert create(storage, repo, owner, pattern="Main")["pattern"] == "Main"

    @pytest.mark.parametrize("count", [-1, 11, 100])
    def test_reviewer_bounds_rejected(self, storage, repo, owner, count):
        with pytest.raises(ValidationError):
            create(storage, repo, owner, required_reviewers=count)

    @pytest.mark.parametrize("count", [0, 1, 5, 10])
    def test_reviewer_bounds_accepted(self, storage, repo, owner, count):
        assert create(storage, repo, owner, pattern=f"b{count}", required_reviewers=count)["required_reviewers"] == count

    @pytest.mark.parametrize("pattern", ["", "a//b", "rel*"])
    def test_bad_pattern_rejected(self, storage, repo, owner, pattern):
        with pytest.raises(ValidationError):
            create(storage, repo, owner, pattern=pattern)

    def test_status_checks_deduplicated_in_order(self, storage, repo, owner):
        rule = create(storage, repo, owner, required_status_checks=["b", "a", "b", " a "])
        assert rule["required_status_checks"] == ["b", "a"]

    def test_empty_status_check_name_rejected(self, storage, repo, owner):
        with pytest.raises(ValidationError):
            create(storage, repo, owner, required_status_checks=["ci", "  "])

    def test_missing_repository_not_found(self, storage, owner):
        with pytest.raises(NotFoundError):
            rules.create_rule(
                storage,
                "00000000-0000-0000-0000-000000000000",
                owner["user_id"],
                RuleCreateRequest(pattern="main", require_pull_request=True),
            )

    def test_concurrent_duplicate_creates_one_wins(self, storage, repo, owner):
        def attempt(_):
            try:
                create(storage, repo, owner, pattern="hotfix/*")
                return "ok"
            except ConflictError:
                return "conflict"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 7
        assert [r["pattern"] for r in storage.list_rules(repo["id"])] == ["hotfix/*"]


class TestPermissions:

    def test_write_collaborator_cannot_create(self, storage, repo, make_user, add_collaborator):
        writer = make_user("writer")
        add_collaborator(repo["id"], writer["user_id"], Permission.WRITE)
        with pytest.raises(AuthorizationError):
            create(storage, repo, writer)

    def test_admin_collaborator_can_manage(self, storage, repo, make_user, add_collaborator):
        admin = make_user("admin")
        add_collaborator(repo["id"], admin["user_id"], Permission.ADMIN)
        rule = create(storage, repo, admin)
        updated = rules.update_rule(storage, rule["id"], repo["id"], admin["user_id"], RuleUpdateRequest(allow_deletion=True))
        assert updated["allow_deletion"] is True
        assert rules.delete_rule(storage, rule["id"], repo["id"], admin["user_id"]) is True

    def test_list_requires_write(self, storage, repo, owner, make_user, add_collaborator):
        create(storage, repo, owner)
        outsider = make_user("outsider")
        with pytest.raises(AuthorizationError):
            rules.list_rules(storage, repo["id"], outsider["user_id"])

        add_collaborator(repo["id"], outsider["user_id"], Permission.WRITE)
        assert len(rules.list_rules(storage, repo["id"], outsider["user_id"])) == 1

    def test_get_requires_write(self, storage, repo, owner, make_user, add_collaborator):
        rule = create(storage, repo, owner)
        reader = make_user("reader")
        add_collaborator(repo["id"], reader["user_id"], Permission.READ)
        with pytest.raises(AuthorizationError):
            rules.get_rule(storage, rule["id"], repo["id"], reader["user_id"])


class TestUpdate:

    def test_partial_update_changes_only_given_fields(self, storage, repo, owner):
        rule = create(storage, repo, owner, pattern="update-me", required_reviewers=1)
        updated = rules.update_rule(
            storage, rule["id"], repo["id"], owner["user_id"],
            RuleUpdateRequest(required_reviewers=3, allow_force_push=True),
        )
        assert updated["required_reviewers"] == 3
        assert updated["allow_force_push"] is True

        fetched = rules.get_rule(storage, rule["id"], repo["id"], owner["user_id"])
        assert fetched == updated
        for field in ("pattern", "require_pull_request", "require_status_checks",
                      "required_status_checks", "allow_deletion", "created_at"):
            assert fetched[field] == rule[field]
        assert fetched["updated_at"] >= rule["updated_at"]

    def test_rename_pattern(self, storage, repo, owner):
        rule = create(storage, repo, owner, pattern="old-name")
        updated = rules.update_rule(storage, rule["id"], repo["id"], owner["user_id"], RuleUpdateRequest(pattern="renamed"))
        assert updated["pattern"] == "renamed"

    def test_rename_to_existing_pattern_conflicts(self, storage, repo, owner):
        create(storage, repo, owner, pattern="main")
        rule = create(storage, repo, owner, pattern="develop")
        with pytest.raises(ConflictError):
            rules.update_rule(storage, rule["id"], repo["id"], owner["user_id"], RuleUpdateRequest(pattern="main"))

    def test_rename_to_own_pattern_is_fine(self, storage, repo, owner):
        rule = create(storage, repo, owner, pattern="main")
        updated = rules.update_rule(storage, rule["id"], repo["id"], owner["user_id"], RuleUpdateRequest(pattern="main"))
        assert updated["pattern"] == "main"

    def test_update_validates_reviewers(self, storage, repo, owner):
        rule = create(storage, repo, owner)
        with pytest.raises(ValidationError):
            rules.update_rule(storage, rule["id"], repo["id"], owner["user_id"], RuleUpdateRequest(required_reviewers=11))

    def test_empty_update_returns_rule_unchanged(self, storage, repo, owner):
        rule = create(storage, repo, owner)
        assert rules.update_rule(storage, rule["id"], repo["id"], owner["user_id"], RuleUpdateRequest()) == rule


class TestCrossRepository:

    @pytest.fixture
    def setup(self, storage, repo, owner, make_repo):
        rule = create(storage, repo, owner, pattern="cross-repo")
        other = make_repo(owner["user_id"], name="other")
        return rule, other

    def test_get_with_wrong_repo_not_found(self, storage, owner, setup):
        rule, other = setup
        with pytest.raises(NotFoundError):
            rules.get_rule(storage, rule["id"], other["id"], owner["user_id"])

    def test_update_with_wrong_repo_not_found(self, storage, owner, setup):
        rule, other = setup
        with pytest.raises(NotFoundError):
            rules.update_rule(storage, rule["id"], other["id"], owner["user_id"], RuleUpdateRequest(allow_deletion=True))
        assert storage.get_rule(rule["id"])["allow_deletion"] is False

    def test_delete_with_wrong_repo_not_found(self, storage, owner, setup):
        rule, other = setup
        with pytest.raises(NotFoundError):
            rules.delete_rule(storage, rule["id"], other["id"], owner["user_id"])
        assert storage.get_rule(rule["id"]) is not None

    def test_mismatch_indistinguishable_from_missing(self, storage, owner, setup):
        rule, other = setup
        with pytest.raises(NotFoundError) as mismatch:
            rules.get_rule(storage, rule["id"], other["id"], owner["user_id"])
        with pytest.raises(NotFoundError) as missing:
            rules.get_rule(storage, "no-such-rule", other["id"], owner["user_id"])
        assert mismatch.value.message == missing.value.message
        assert mismatch.value.status_code == missing.value.status_code == 404


def test_delete_then_get_not_found(storage, repo, owner):
    rule = create(storage, repo, owner)
    assert rules.delete_rule(storage, rule["id"], repo["id"], owner["user_id"]) is True
    with pytest.raises(NotFoundError):
        rules.get_rule(storage, rule["id"], repo["id"], owner["user_id"])


def test_list_in_creation_order(storage, repo, owner):
    for pattern in ("main", "release/*", "develop"):
        create(storage, repo, owner, pattern=pattern)
    listed = rules.list_rules(storage, repo["id"], owner["user_id"])
    assert [r["pattern"] for r in listed] == ["main", "release/*", "develop"]
