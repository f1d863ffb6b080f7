import pytest

from branchguard.app.services.matcher import matches, pattern_problem, wildcard_count


class TestMatches:

    @pytest.mark.parametrize("pattern,branch", [
        ("main", "main"),
        ("release/*", "release/v1.0"),
        ("feature/*/dev", "feature/auth/dev"),
        ("*", "main"),
        ("*/*", "hotfix/urgent"),
    ])
    def test_matching_pairs(self, pattern, branch):
        assert matches(pattern, branch) is True

    @pytest.mark.parametrize("pattern,branch", [
        ("release/*", "feature/x"),
        ("main", "Main"),
        ("main", "main2"),
        ("feature/*/dev", "feature/auth/prod"),
    ])
    def test_non_matching_pairs(self, pattern, branch):
        assert matches(pattern, branch) is False

    @pytest.mark.parametrize("pattern,branch", [
        ("feature/*/dev", "feature/dev"),
        ("feature/*/dev", "feature/a/b/dev"),
        ("release/*", "release"),
        ("*", "release/v1"),
        ("main", "main/extra"),
    ])
    def test_different_segment_counts_never_match(self, pattern, branch):
        assert matches(pattern, branch) is False

    def test_wildcard_requires_non_empty_segment(self):
        assert matches("release/*", "release/") is False
        assert matches("feature/*/dev", "feature//dev") is False

    @pytest.mark.parametrize("pattern,branch", [
        ("", "main"),
        ("main", ""),
        ("", ""),
        ("*", ""),
    ])
    def test_empty_inputs_never_match(self, pattern, branch):
        assert matches(pattern, branch) is False

    def test_star_is_not_a_substring_glob(self):
        # "*" only has meaning as a whole segment
        assert matches("rel*", "release") is False


def test_wildcard_count():
    assert wildcard_count("main") == 0
    assert wildcard_count("release/*") == 1
    assert wildcard_count("*/x/*") == 2


class TestPatternProblem:

    def test_valid_patterns(self):
        for pattern in ("main", "release/*", "feature/*/dev", "*"):
            assert pattern_problem(pattern) is None

    @pytest.mark.parametrize("pattern", ["", "   ", "a//b", "/main", "main/", "rel*", "feature/x*/dev", " main"])
    def test_invalid_patterns(self, pattern):
        assert pattern_problem(pattern) is not None

    def test_too_long(self):
        assert pattern_problem("a" * 256) is not None
        assert pattern_problem("a" * 255) is None
