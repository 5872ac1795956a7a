"""Shared fixtures for hfile tests."""

import pytest

from pyhfile.config import Settings
from pyhfile.utils import METADATA_DIR_NAME


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point HOME at a temp dir and clear hfile environment overrides."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("HFILE_SERVER", raising=False)
    monkeypatch.delenv("HFILE_TOKEN", raising=False)
    return home


@pytest.fixture
def repo_dir(tmp_path):
    """Create an empty repository (directory with the metadata marker)."""
    repo = tmp_path / "myrepo"
    (repo / METADATA_DIR_NAME).mkdir(parents=True)
    return repo


@pytest.fixture
def settings(repo_dir, isolated_env):
    """Settings pointing at the temporary repository."""
    return Settings(
        server_url="http://hfile.test",
        token="test-token",
        repo_root=repo_dir,
        home_dir=isolated_env,
        working_dir=repo_dir,
    )
