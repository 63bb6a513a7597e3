"""Tests for version normalization and ordering."""

import pytest

from reqflow.exceptions import InvalidVersionString
from reqflow.versions import (
    Version,
    compare_versions,
    is_branch,
    is_dev,
    normalize,
    normalize_branch,
    sort_versions,
)


class TestNormalize:
    """Test Composer style version normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1.2", "1.2.0.0"),
            ("v1.2.3", "1.2.3.0"),
            ("1.0.0-beta.2", "1.0.0.0-beta2"),
            ("1.0RC1", "1.0.0.0-RC1"),
            ("1.0.0-b3", "1.0.0.0-beta3"),
            ("1.0.0-p1", "1.0.0.0-patch1"),
            ("1.0-dev", "1.0.0.0-dev"),
            ("1.0.0-stable", "1.0.0.0"),
            ("1.0.0@beta", "1.0.0.0"),
            ("1.0.0+build.5", "1.0.0.0"),
            ("1.2.3 as 1.3.0", "1.2.3.0"),
            ("2010-01-02", "2010.01.02"),
        ],
    )
    def test_normalize_numeric(self, raw, expected):
        """Test numeric versions are padded and modifiers expanded."""
        assert normalize(raw) == expected

    def test_normalize_branches(self):
        """Test branch names keep a dev- prefix and numeric branches become open ended."""
        assert normalize("dev-main") == "dev-main"
        assert normalize("master") == "dev-master"
        assert normalize("1.x-dev") == "1.9999999.9999999.9999999-dev"
        assert normalize("2.1.x-dev") == "2.1.9999999.9999999-dev"

    def test_normalize_branch_helper(self):
        """Test normalize_branch for numeric and named branches."""
        assert normalize_branch("2.x") == "2.9999999.9999999.9999999-dev"
        assert normalize_branch("feature") == "dev-feature"

    @pytest.mark.parametrize("raw", ["foo", "1.0.0 beta", ""])
    def test_invalid_versions_raise(self, raw):
        """Test unparseable strings raise InvalidVersionString."""
        with pytest.raises(InvalidVersionString):
            normalize(raw)

    def test_invalid_version_is_value_error(self):
        """Test the error also behaves as a ValueError."""
        with pytest.raises(ValueError):
            normalize("not a version")


class TestOrdering:
    """Test version comparison."""

    def test_semantic_precedence(self):
        """Test 1.2.3 < 1.2.10 < 2.0.0-alpha < 2.0.0."""
        ordered = ["1.2.3", "1.2.10", "2.0.0-alpha", "2.0.0"]
        for lower, higher in zip(ordered, ordered[1:]):
            assert compare_versions(lower, higher) == -1
            assert compare_versions(higher, lower) == 1

    def test_suffix_ranks(self):
        """Test dev < alpha < beta < RC < stable < patch."""
        ordered = ["1.0.0-dev", "1.0.0-alpha1", "1.0.0-beta1", "1.0.0-RC1", "1.0.0", "1.0.0-p1"]
        assert sort_versions(reversed(ordered)) == ordered

    def test_branches_sort_highest(self):
        """Test dev-* branches sort above every numeric version."""
        assert compare_versions("dev-main", "99.0.0") == 1
        assert compare_versions("dev-feature", "dev-feature") == 0
        assert sort_versions(["dev-main", "2.0.0", "1.0.0-beta"]) == ["1.0.0-beta", "2.0.0", "dev-main"]

    def test_equal_after_normalization(self):
        """Test versions that normalize identically compare equal and hash alike."""
        assert compare_versions("1.0", "1.0.0.0") == 0
        assert Version("1.0.0") == Version("1.0.0.0")
        assert hash(Version("1.0.0")) == hash(Version("1.0.0.0"))
        assert Version.parse("v2.0") > Version.parse("1.9.9")

    def test_sort_reverse(self):
        """Test descending sort."""
        assert sort_versions(["1.0", "3.0", "2.0"], reverse=True) == ["3.0", "2.0", "1.0"]


class TestPredicates:
    """Test branch and dev helpers."""

    def test_is_branch(self):
        """Test only dev- prefixed versions are branches."""
        assert is_branch("dev-main")
        assert not is_branch("1.0.0.0-dev")

    def test_is_dev(self):
        """Test branches and -dev suffixed versions are dev versions."""
        assert is_dev("dev-main")
        assert is_dev("1.9999999.9999999.9999999-dev")
        assert not is_dev("1.0.0.0")
