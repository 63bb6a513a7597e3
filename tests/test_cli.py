"""End-to-end tests for the command line interface, using local repositories only."""

import json
import logging
from unittest.mock import patch

import pytest
import yaml

from reqflow.cli import main

PACKAGES = [
    {"name": "acme/foo", "version": "1.0.0", "description": "Foo helpers"},
    {"name": "acme/foo", "version": "1.2.0", "description": "Foo helpers"},
    {"name": "acme/tool", "version": "2.3.0", "description": "Developer tool"},
]


@pytest.fixture
def project(tmp_path):
    config = tmp_path / "reqflow.yaml"
    config.write_text(
        yaml.safe_dump(
            {
                "repositories": [{"type": "package", "name": "local", "packages": PACKAGES}],
                "cache-dir": str(tmp_path / "cache"),
                "detect-platform": False,
            }
        ),
        encoding="utf-8",
    )
    return tmp_path


def write_manifest(directory, data):
    path = directory / "composer.json"
    path.write_text(json.dumps(data, indent=4) + "\n", encoding="utf-8")
    return path


def run(directory, *args):
    return main(["--config", str(directory / "reqflow.yaml"), "-d", str(directory), *args])


def read_manifest(directory):
    return json.loads((directory / "composer.json").read_text(encoding="utf-8"))


class TestRequire:
    """Test the require command."""

    def test_writes_recommended_constraint(self, project, capsys):
        write_manifest(project, {"name": "acme/app", "require": {}})
        assert run(project, "require", "acme/foo") == 0
        assert read_manifest(project) == {"name": "acme/app", "require": {"acme/foo": "^1.2"}}
        assert "acme/foo ^1.2 (selected 1.2.0, from local)" in capsys.readouterr().out

    def test_creates_manifest(self, project):
        assert run(project, "require", "acme/foo:^1.0") == 0
        assert read_manifest(project) == {"require": {"acme/foo": "^1.0"}}

    def test_dev_moves_between_sections(self, project, caplog):
        """Test --dev moves an existing requirement to require-dev."""
        write_manifest(project, {"require": {"acme/tool": "^2.0"}})
        with caplog.at_level(logging.WARNING):
            assert run(project, "require", "--dev", "acme/tool") == 0
        assert read_manifest(project) == {"require-dev": {"acme/tool": "^2.3"}}
        assert "moves it to the require-dev key" in caplog.text

    def test_dry_run_leaves_manifest_untouched(self, project, capsys):
        path = write_manifest(project, {"require": {}})
        before = path.read_bytes()
        assert run(project, "require", "--dry-run", "acme/foo") == 0
        assert path.read_bytes() == before
        assert "acme/foo ^1.2" in capsys.readouterr().out

    def test_unknown_package(self, project, capsys):
        """Test a failed resolution reports the error and writes nothing."""
        path = write_manifest(project, {"require": {"acme/foo": "^1.0"}})
        before = path.read_bytes()
        assert run(project, "require", "acme/foo:^1.0", "acme/nothing") == 1
        assert path.read_bytes() == before
        assert "error: Could not find a matching version of package acme/nothing." in capsys.readouterr().err

    def test_fixed_requires_project_type(self, project, capsys):
        write_manifest(project, {"name": "acme/lib"})
        assert run(project, "require", "--fixed", "acme/foo") == 1
        assert '"--fixed" option is allowed for "project" package types only' in capsys.readouterr().err

    def test_fixed(self, project):
        write_manifest(project, {"name": "acme/app", "type": "project"})
        assert run(project, "require", "--fixed", "acme/foo") == 0
        assert read_manifest(project)["require"] == {"acme/foo": "1.2.0"}

    def test_root_package_cannot_require_itself(self, project, capsys):
        write_manifest(project, {"name": "acme/app"})
        assert run(project, "require", "ACME/app") == 1
        assert "cannot require itself" in capsys.readouterr().err

    def test_invalid_manifest(self, project, capsys):
        (project / "composer.json").write_text("{broken", encoding="utf-8")
        assert run(project, "require", "acme/foo") == 1
        assert "does not contain valid JSON" in capsys.readouterr().err


class TestSuggest:
    """Test the suggest command."""

    def test_json(self, project, capsys):
        assert run(project, "suggest", "--format", "json", "acme/foo", "acme/tool:^2.0") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["require"] == {"acme/foo": "^1.2", "acme/tool": "^2.0"}
        assert not (project / "composer.json").exists()

    def test_invalid_stability_option(self, project, capsys):
        assert run(project, "suggest", "--stability", "nightly", "acme/foo") == 1
        assert "Invalid stability" in capsys.readouterr().err


class TestBump:
    """Test the bump command."""

    def write_lock(self, directory):
        (directory / "composer.lock").write_text(
            json.dumps(
                {
                    "packages": [{"name": "acme/foo", "version": "1.2.0"}],
                    "packages-dev": [{"name": "acme/tool", "version": "2.3.0"}],
                }
            ),
            encoding="utf-8",
        )

    def test_bump(self, project, capsys):
        path = write_manifest(
            project,
            {"type": "project", "require": {"php": "^8.0", "acme/foo": "^1.0"}, "require-dev": {"acme/tool": "^2.0"}},
        )
        self.write_lock(project)
        assert run(project, "bump") == 0
        assert read_manifest(project) == {
            "type": "project",
            "require": {"php": "^8.0", "acme/foo": "^1.2"},
            "require-dev": {"acme/tool": "^2.3"},
        }
        assert f"{path} has been updated (2 changes)." in capsys.readouterr().out

    def test_dev_only(self, project):
        write_manifest(project, {"type": "project", "require": {"acme/foo": "^1.0"}, "require-dev": {"acme/tool": "^2.0"}})
        self.write_lock(project)
        assert run(project, "bump", "--dev-only") == 0
        assert read_manifest(project)["require"] == {"acme/foo": "^1.0"}
        assert read_manifest(project)["require-dev"] == {"acme/tool": "^2.3"}

    def test_dry_run(self, project, capsys):
        """Test --dry-run exits 1 when something would change."""
        path = write_manifest(project, {"type": "project", "require": {"acme/foo": "^1.0"}})
        before = path.read_bytes()
        self.write_lock(project)
        assert run(project, "bump", "--dry-run") == 1
        assert path.read_bytes() == before
        assert "acme/foo: ^1.0 -> ^1.2" in capsys.readouterr().out

    def test_nothing_to_bump(self, project, capsys):
        path = write_manifest(project, {"type": "project", "require": {"acme/foo": "^1.2"}})
        self.write_lock(project)
        assert run(project, "bump") == 0
        assert run(project, "bump", "--dry-run") == 0
        assert f"No requirements to update in {path}." in capsys.readouterr().out

    def test_missing_manifest(self, project, capsys):
        assert run(project, "bump") == 1
        assert "not found" in capsys.readouterr().err

    def test_missing_lock(self, project, capsys):
        write_manifest(project, {"type": "project", "require": {"acme/foo": "^1.0"}})
        assert run(project, "bump") == 1
        assert "No composer.lock" in capsys.readouterr().err


class TestSearchAndCache:
    """Test search and update-cache."""

    def test_search(self, project, capsys):
        assert run(project, "search", "tool") == 0
        assert capsys.readouterr().out == "acme/tool Developer tool\n"

    def test_search_aligns_names(self, project, capsys):
        assert run(project, "search", "acme") == 0
        assert capsys.readouterr().out.splitlines() == ["acme/foo  Foo helpers", "acme/tool Developer tool"]

    def test_search_nothing(self, project, capsys):
        assert run(project, "search", "nothing") == 0
        assert capsys.readouterr().out == "No packages found.\n"

    def test_update_cache_without_composer_repositories(self, project, capsys):
        assert run(project, "update-cache", "acme/foo") == 0
        assert capsys.readouterr().out == "No cache entries updated.\n"

    def test_update_cache_reports_newest_release(self, project, capsys):
        """Test priming a Composer repository reports the version count and the newest release."""
        config = yaml.safe_load((project / "reqflow.yaml").read_text(encoding="utf-8"))
        config["repositories"] = [{"type": "composer", "url": "https://repo.example.org", "name": "mirror"}]
        (project / "reqflow.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")

        def fake_fetch(url, package, session=None):
            if package.endswith("~dev"):
                return {"packages": {}}
            versions = [{"name": "acme/foo", "version": version} for version in ("1.0.0", "1.10.0", "1.9.0")]
            return {"packages": {"acme/foo": versions}}

        with patch("reqflow.repositories.fetch_package_versions", side_effect=fake_fetch):
            assert run(project, "update-cache", "acme/foo") == 0
        assert capsys.readouterr().out == "Primed cache entries:\n  - acme/foo from mirror (3 versions, newest 1.10.0)\n"
