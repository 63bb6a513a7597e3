"""Tests for best candidate selection."""

from reqflow.models import is_alias, package_from_dict
from reqflow.platform import IgnoreAllFilter, IgnoreListFilter
from reqflow.pool import RepositorySet
from reqflow.repositories import ArrayRepository, PlatformRepository
from reqflow.selector import NOT_FOUND, VersionSelector


def make_selector(entries, platform=None, minimum_stability="stable", repositories=None):
    repositories = repositories or [ArrayRepository.from_dicts(entries, name="r1")]
    pool = RepositorySet(repositories, minimum_stability=minimum_stability)
    platform_repository = PlatformRepository(platform) if platform is not None else None
    return VersionSelector(pool, platform_repository)


MIXED = [
    {"name": "acme/foo", "version": "1.0.0"},
    {"name": "acme/foo", "version": "1.2.0"},
    {"name": "acme/foo", "version": "2.0.0-beta"},
]


class TestStabilityPreference:
    """Test how minimum and preferred stability shape the pick."""

    def test_stable_minimum(self):
        """Test the newest stable release wins under minimum-stability stable."""
        assert make_selector(MIXED).find_best_candidate("acme/foo").pretty_version == "1.2.0"

    def test_beta_minimum(self):
        """Test the beta is eligible and newest under minimum-stability beta."""
        selector = make_selector(MIXED, minimum_stability="beta")
        assert selector.find_best_candidate("acme/foo").pretty_version == "2.0.0-beta"

    def test_preferred_stable_with_beta_minimum(self):
        """Test preferring stable keeps 1.2.0 over a newer beta."""
        selector = make_selector(MIXED, minimum_stability="beta")
        assert selector.find_best_candidate("acme/foo", preferred_stability="stable").pretty_version == "1.2.0"

    def test_preferred_stable_falls_back_to_unstable(self):
        """Test an unstable release is still picked when nothing stable exists."""
        selector = make_selector([{"name": "acme/foo", "version": "2.0.0-beta"}], minimum_stability="beta")
        assert selector.find_best_candidate("acme/foo", preferred_stability="stable").pretty_version == "2.0.0-beta"

    def test_name_is_case_insensitive(self):
        assert make_selector(MIXED).find_best_candidate("ACME/Foo").pretty_version == "1.2.0"


class TestConstraints:
    """Test required versions and stability flags."""

    def test_required_version(self):
        selector = make_selector(MIXED)
        assert selector.find_best_candidate("acme/foo", "~1.0.0").pretty_version == "1.0.0"

    def test_stability_flag_lifts_minimum(self):
        """Test @beta admits beta releases for this request only."""
        selector = make_selector(MIXED)
        assert selector.find_best_candidate("acme/foo", "^2.0@beta").pretty_version == "2.0.0-beta"
        assert selector.find_best_candidate("acme/foo", "^2.0") is NOT_FOUND

    def test_not_found(self):
        """Test NOT_FOUND is a falsy sentinel."""
        result = make_selector(MIXED).find_best_candidate("acme/missing")
        assert result is NOT_FOUND
        assert not result
        assert repr(result) == "NOT_FOUND"

    def test_allow_unacceptable_stabilities(self):
        selector = make_selector(MIXED)
        found = selector.find_best_candidate("acme/foo", "^2.0", allow_unacceptable_stabilities=True)
        assert found.pretty_version == "2.0.0-beta"


class TestPlatform:
    """Test platform requirement checks."""

    ENTRIES = [
        {"name": "acme/foo", "version": "1.0.0", "require": {"ext-xml": "*"}},
        {"name": "acme/foo", "version": "2.0.0", "require": {"ext-gd": "*"}},
    ]

    def test_missing_extension_excludes_candidate(self):
        """Test a candidate needing an absent extension is skipped."""
        selector = make_selector(self.ENTRIES, platform={"ext-xml": "1.0.0"})
        assert selector.find_best_candidate("acme/foo").pretty_version == "1.0.0"

    def test_ignore_list(self):
        """Test ignoring ext-gd makes 2.0.0 eligible."""
        selector = make_selector(self.ENTRIES, platform={"ext-xml": "1.0.0"})
        found = selector.find_best_candidate("acme/foo", platform_filter=IgnoreListFilter(["ext-gd"]))
        assert found.pretty_version == "2.0.0"

    def test_ignore_all(self):
        selector = make_selector(self.ENTRIES, platform={})
        assert selector.find_best_candidate("acme/foo", platform_filter=IgnoreAllFilter()).pretty_version == "2.0.0"

    def test_php_version(self):
        """Test a php requirement above the platform version excludes the candidate."""
        entries = [
            {"name": "acme/foo", "version": "1.5.0", "require": {"php": ">=7.4"}},
            {"name": "acme/foo", "version": "2.0.0", "require": {"php": ">=8.3"}},
        ]
        selector = make_selector(entries, platform={"php": "8.2.0"})
        assert selector.find_best_candidate("acme/foo").pretty_version == "1.5.0"

    def test_upper_bound_ignored(self):
        """Test php+ relaxes ^7.4 so it accepts php 8."""
        entries = [{"name": "acme/foo", "version": "1.0.0", "require": {"php": "^7.4"}}]
        selector = make_selector(entries, platform={"php": "8.2.0"})
        assert selector.find_best_candidate("acme/foo") is NOT_FOUND
        found = selector.find_best_candidate("acme/foo", platform_filter=IgnoreListFilter(["php+"]))
        assert found.pretty_version == "1.0.0"

    def test_no_platform_repository_skips_checks(self):
        selector = make_selector(self.ENTRIES)
        assert selector.find_best_candidate("acme/foo").pretty_version == "2.0.0"
        assert selector.unsatisfied_platform_requirements(selector.find_best_candidate("acme/foo")) == []

    def test_exception_details(self):
        """Test each kind of platform failure is explained."""
        candidate = package_from_dict(
            {
                "name": "acme/foo",
                "version": "2.0.0",
                "require": {"php": ">=8.3", "ext-gd": "*", "ext-intl": "^2.0", "acme/bar": "^1.0"},
            }
        )[0]
        selector = make_selector([], platform={"php": "8.2.0", "ext-intl": False})
        assert selector.platform_exception_details(candidate) == [
            "acme/foo 2.0.0 requires php >=8.3 which does not match your installed version 8.2.0.",
            "acme/foo 2.0.0 requires ext-gd * but it is not present.",
            'acme/foo 2.0.0 requires ext-intl ^2.0 but it is disabled by your platform config. '
            'Enable it again by removing "ext-intl" from the platform configuration.',
        ]

    def test_unsatisfied_requirements_respect_filter(self):
        candidate = package_from_dict({"name": "acme/foo", "version": "2.0.0", "require": {"ext-gd": "*"}})[0]
        selector = make_selector([], platform={})
        assert [link.target for link in selector.unsatisfied_platform_requirements(candidate)] == ["ext-gd"]
        assert selector.unsatisfied_platform_requirements(candidate, IgnoreAllFilter()) == []


class TestTieBreaks:
    """Test branches, aliases, repositories and providers."""

    def test_default_branch_alias_is_unwrapped(self):
        """Test the default branch is reported as the branch, not its alias."""
        selector = make_selector(
            [{"name": "acme/foo", "version": "dev-main", "default-branch": True}], minimum_stability="dev"
        )
        found = selector.find_best_candidate("acme/foo")
        assert not is_alias(found)
        assert found.pretty_version == "dev-main"

    def test_equal_versions_prefer_higher_priority_repository(self):
        """Test the first repository wins between identical versions."""
        r1 = ArrayRepository.from_dicts([{"name": "acme/foo", "version": "1.0.0"}], name="r1", canonical=False)
        r2 = ArrayRepository.from_dicts([{"name": "acme/foo", "version": "1.0"}], name="r2")
        found = make_selector([], repositories=[r1, r2]).find_best_candidate("acme/foo")
        assert found.repository == "r1"

    def test_newer_version_in_lower_priority_non_canonical(self):
        r1 = ArrayRepository.from_dicts([{"name": "acme/foo", "version": "1.0.0"}], name="r1", canonical=False)
        r2 = ArrayRepository.from_dicts([{"name": "acme/foo", "version": "1.1.0"}], name="r2")
        found = make_selector([], repositories=[r1, r2]).find_best_candidate("acme/foo")
        assert (found.pretty_version, found.repository) == ("1.1.0", "r2")

    def test_provider(self):
        """Test a virtual name is satisfied by a provider."""
        entries = [{"name": "acme/logger", "version": "1.3.0", "provide": {"psr/log-implementation": "1.0.0"}}]
        selector = make_selector(entries)
        assert selector.find_best_candidate("psr/log-implementation").name == "acme/logger"
        assert selector.find_best_candidate("psr/log-implementation", "^1.0").name == "acme/logger"
        assert selector.find_best_candidate("psr/log-implementation", "^2.0") is NOT_FOUND

    def test_default_branch_beats_feature_branches(self):
        """Test the default branch wins over releases and other branches regardless of name."""
        entries = [
            {"name": "acme/foo", "version": "1.2.0"},
            {"name": "acme/foo", "version": "dev-main", "default-branch": True},
            {"name": "acme/foo", "version": "dev-zz-experiment"},
            {"name": "acme/foo", "version": "dev-aa-experiment"},
        ]
        found = make_selector(entries, minimum_stability="dev").find_best_candidate("acme/foo")
        assert not is_alias(found)
        assert found.pretty_version == "dev-main"

    def test_feature_branches_are_not_ranked_by_name(self):
        """Test the first listed feature branch stays when there is no default branch."""
        entries = [
            {"name": "acme/foo", "version": "1.2.0"},
            {"name": "acme/foo", "version": "dev-bugfix"},
            {"name": "acme/foo", "version": "dev-zz-experiment"},
        ]
        found = make_selector(entries, minimum_stability="dev").find_best_candidate("acme/foo")
        assert found.pretty_version == "dev-bugfix"

    def test_equal_versions_prefer_real_package_over_alias(self):
        """Test a real 2.1.x-dev wins over dev-main aliased to the same version."""
        entries = [
            {"name": "acme/foo", "version": "dev-main", "extra": {"branch-alias": {"dev-main": "2.1.x-dev"}}},
            {"name": "acme/foo", "version": "2.1.x-dev"},
        ]
        found = make_selector(entries).find_best_candidate("acme/foo", "^2.1@dev")
        assert not is_alias(found)
        assert found.pretty_version == "2.1.x-dev"
