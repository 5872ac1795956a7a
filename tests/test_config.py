"""Tests for layered configuration."""

import tomllib

import pytest

from pyhfile.config import (
    Settings,
    find_repo_root,
    home_config_path,
    init_home_config,
    init_repo_config,
    read_config_file,
    repo_config_path,
    write_config_file,
)
from pyhfile.exceptions import HfileConfigError, HfileRepositoryNotFoundError
from pyhfile.utils import DEFAULT_SERVER_URL


def _read(path):
    with path.open("rb") as f:
        return tomllib.load(f)


class TestFindRepoRoot:
    """Tests for find_repo_root."""

    def test_finds_marker_in_parent(self, repo_dir):
        nested = repo_dir / "a" / "b"
        nested.mkdir(parents=True)

        assert find_repo_root(nested) == repo_dir.resolve()

    def test_outside_repository(self, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()

        assert find_repo_root(outside) is None

    def test_home_directory_is_not_a_repository(self, isolated_env):
        init_home_config("http://home", home_dir=isolated_env)
        nested = isolated_env / "documents" / "notes"
        nested.mkdir(parents=True)

        assert find_repo_root(nested, isolated_env) is None
        assert find_repo_root(isolated_env, isolated_env) is None

    def test_repository_below_home(self, isolated_env):
        init_home_config("http://home", home_dir=isolated_env)
        repo = isolated_env / "project"
        init_repo_config(repo, "http://repo", home_dir=isolated_env)
        nested = repo / "src"
        nested.mkdir()

        assert find_repo_root(nested, isolated_env) == repo.resolve()


class TestConfigFiles:
    """Tests for reading and writing config files."""

    def test_missing_file_is_empty(self, tmp_path):
        assert read_config_file(tmp_path / "nope.toml") == {}

    def test_write_and_read(self, tmp_path):
        path = tmp_path / "sub" / "config.toml"

        write_config_file(path, {"server": "http://x", "token": None})

        assert read_config_file(path) == {"server": "http://x"}

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("server = \n")

        with pytest.raises(HfileConfigError, match="Failed to parse"):
            read_config_file(path)

    def test_init_home_config(self, isolated_env):
        path = init_home_config("http://server:9000", home_dir=isolated_env)

        assert path == home_config_path(isolated_env)
        assert _read(path) == {"server": "http://server:9000"}

    def test_init_home_config_default(self, isolated_env):
        path = init_home_config(home_dir=isolated_env)

        assert _read(path) == {"server": DEFAULT_SERVER_URL}

    def test_init_repo_config_keeps_token(self, tmp_path):
        repo = tmp_path / "project"
        repo.mkdir()
        write_config_file(repo_config_path(repo), {"server": "old", "token": "t"})

        init_repo_config(repo, "http://new")

        assert _read(repo_config_path(repo)) == {"server": "http://new", "token": "t"}

    def test_init_repo_config_refuses_home(self, isolated_env):
        init_home_config("http://home", home_dir=isolated_env)

        with pytest.raises(HfileConfigError, match="home directory"):
            init_repo_config(isolated_env, "http://repo", home_dir=isolated_env)

        assert _read(home_config_path(isolated_env)) == {"server": "http://home"}


class TestSettingsLoad:
    """Tests for Settings.load priority."""

    def test_defaults(self, tmp_path, isolated_env):
        start = tmp_path / "outside"
        start.mkdir()

        settings = Settings.load(start_dir=start, home_dir=isolated_env)

        assert settings.server_url == DEFAULT_SERVER_URL
        assert settings.token is None
        assert settings.repo_root is None
        assert settings.sources["server"] == "default"

    def test_home_layer(self, tmp_path, isolated_env):
        write_config_file(
            home_config_path(isolated_env),
            {"server": "http://home", "token": "home-token"},
        )
        start = tmp_path / "outside"
        start.mkdir()

        settings = Settings.load(start_dir=start, home_dir=isolated_env)

        assert settings.server_url == "http://home"
        assert settings.token == "home-token"
        assert settings.sources == {"server": "home", "token": "home"}

    def test_home_config_does_not_make_home_a_repository(self, isolated_env):
        write_config_file(home_config_path(isolated_env), {"server": "http://home"})
        start = isolated_env / "downloads"
        start.mkdir()

        settings = Settings.load(start_dir=start, home_dir=isolated_env)

        assert settings.repo_root is None
        assert settings.sources["server"] == "home"

    def test_repository_layer_wins(self, repo_dir, isolated_env):
        write_config_file(
            home_config_path(isolated_env),
            {"server": "http://home", "token": "home-token"},
        )
        write_config_file(
            repo_config_path(repo_dir),
            {"server": "http://repo", "token": "repo-token", "refresh_token": "r"},
        )

        settings = Settings.load(start_dir=repo_dir, home_dir=isolated_env)

        assert settings.server_url == "http://repo"
        assert settings.token == "repo-token"
        assert settings.refresh_token == "r"
        assert settings.repo_name == repo_dir.name

    def test_layers_resolved_independently(self, repo_dir, isolated_env):
        """A repo config without a token falls back to the home token."""
        write_config_file(home_config_path(isolated_env), {"token": "home-token"})
        write_config_file(repo_config_path(repo_dir), {"server": "http://repo"})

        settings = Settings.load(start_dir=repo_dir, home_dir=isolated_env)

        assert settings.server_url == "http://repo"
        assert settings.token == "home-token"

    def test_overrides_win(self, repo_dir, isolated_env):
        write_config_file(
            repo_config_path(repo_dir), {"server": "http://repo", "token": "t"}
        )

        settings = Settings.load(
            start_dir=repo_dir,
            server_override="http://cli/",
            token_override="cli-token",
            home_dir=isolated_env,
        )

        assert settings.server_url == "http://cli"
        assert settings.token == "cli-token"
        assert settings.sources == {"server": "override", "token": "override"}


class TestSettingsRequirements:
    """Tests for require_token and require_repo."""

    def test_require_token(self, settings):
        assert settings.require_token() == "test-token"

    def test_require_token_missing(self, tmp_path):
        settings = Settings(working_dir=tmp_path, home_dir=tmp_path)

        with pytest.raises(HfileConfigError, match="hfile login"):
            settings.require_token()

    def test_require_repo(self, settings, repo_dir):
        assert settings.require_repo() == repo_dir

    def test_require_repo_missing(self, tmp_path):
        settings = Settings(working_dir=tmp_path, home_dir=tmp_path)

        with pytest.raises(HfileRepositoryNotFoundError):
            settings.require_repo()


class TestSaveToken:
    """Tests for Settings.save_token target selection."""

    def test_prefers_repository_config(self, settings, repo_dir, isolated_env):
        write_config_file(repo_config_path(repo_dir), {"server": "http://repo"})
        write_config_file(home_config_path(isolated_env), {"server": "http://home"})

        path = settings.save_token("new", "refresh")

        assert path == repo_config_path(repo_dir)
        assert _read(path) == {
            "server": "http://repo",
            "token": "new",
            "refresh_token": "refresh",
        }
        assert "token" not in _read(home_config_path(isolated_env))
        assert settings.token == "new"

    def test_falls_back_to_home_config(self, settings, isolated_env):
        write_config_file(home_config_path(isolated_env), {"server": "http://home"})

        path = settings.save_token("new")

        assert path == home_config_path(isolated_env)
        assert _read(path)["token"] == "new"

    def test_creates_config_when_none_exists(self, tmp_path, isolated_env):
        work = tmp_path / "work"
        work.mkdir()
        settings = Settings(
            server_url="http://s", working_dir=work, home_dir=isolated_env
        )

        path = settings.save_token("new")

        assert path == repo_config_path(work)
        assert _read(path) == {
            "server": "http://s",
            "token": "new",
            "refresh_token": "",
        }


class TestDescribe:
    """Tests for Settings.describe."""

    def test_masks_token(self, repo_dir, isolated_env):
        write_config_file(
            repo_config_path(repo_dir),
            {"server": "http://repo", "token": "abcdef1234567890wxyz"},
        )
        settings = Settings.load(start_dir=repo_dir, home_dir=isolated_env)

        rows = dict(settings.describe())

        assert rows["Active server"] == "http://repo (repository)"
        assert "abcdef****wxyz" in rows["Repository config"]
        assert "abcdef1234567890wxyz" not in rows["Repository config"]
        assert rows["Home config"].endswith("(not found)")
