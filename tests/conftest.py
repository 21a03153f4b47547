"""Shared fixtures: a minimal build environment and throwaway git repositories."""

import os
import shutil
import subprocess

import pytest


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


@pytest.fixture
def build_env(tmp_path):
    """The smallest environment the pipeline accepts."""
    return {
        "BUILD_COMPILER": "CPython 3.12.4",
        "BUILD_TARGET": "linux-x86_64",
        "BUILD_SOURCE_DIR": str(tmp_path),
    }


class GitRepo:
    """Drive a scratch repository with the git executable."""

    def __init__(self, path):
        self.path = path
        self.env = dict(os.environ)
        self.env.update({
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Test",
            "GIT_AUTHOR_EMAIL": "test@example.com",
            "GIT_COMMITTER_NAME": "Test",
            "GIT_COMMITTER_EMAIL": "test@example.com",
        })
        for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
            self.env.pop(var, None)

    def git(self, *args):
        out = subprocess.check_output(
            ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
            cwd=str(self.path),
            env=self.env,
        )
        return out.decode().strip()

    def write(self, name, content):
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def commit(self, message="commit"):
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path):
    """A repository on branch main with one committed file."""
    repo = GitRepo(tmp_path)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    repo.write("README.txt", "hello\n")
    repo.commit("initial")
    return repo


@pytest.fixture(autouse=True)
def isolated_user_settings(tmp_path_factory, monkeypatch):
    """Keep the developer's own settings.json out of the tests."""
    settings = tmp_path_factory.mktemp("user-config") / "settings.json"
    monkeypatch.setattr("buildstamp.config.user_settings_path", lambda: settings)
    return settings
