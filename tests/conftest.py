"""Pytest configuration and fixtures."""
import json
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pygit2
import pytest

PACKAGE_JSON = {
    "name": "sample-app",
    "version": "1.0.0",
    "scripts": {"test": "jest"},
    "dependencies": {
        "lodash": "^4.17.19",
        "express": "^4.18.0",
    },
    "devDependencies": {
        "jest": "^29.0.0",
    },
}


def write_manifest(project: Path, data: dict) -> None:
    with open(project / "package.json", "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")


def read_manifest(project: Path) -> dict:
    with open(project / "package.json", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def node_project(tmp_path):
    """Minimal Node.js project with a package.json and no lockfile."""
    project = tmp_path / "app"
    project.mkdir()
    write_manifest(project, PACKAGE_JSON)
    return project


@pytest.fixture
def git_project(node_project):
    """node_project committed to a fresh git repository (built with pygit2, no git binary)."""
    repo = pygit2.init_repository(str(node_project))
    (node_project / "package-lock.json").write_text('{"lockfileVersion": 3}\n', encoding="utf-8")

    index = repo.index
    index.add("package.json")
    index.add("package-lock.json")
    index.write()
    tree = index.write_tree()

    signature = pygit2.Signature("Test User", "test@example.com")
    repo.create_commit("HEAD", signature, signature, "initial", tree, [])
    return node_project


@dataclass
class _Response:
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    exc: BaseException | None = None


class FakeRun:
    """Stand-in for subprocess.run that matches on argv prefixes.

    Unmatched commands succeed with empty output. Every call is recorded.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self._responses: list[tuple[list[str], _Response]] = []

    def add(self, prefix, stdout="", stderr="", returncode=0, exc=None):
        self._responses.append((list(prefix), _Response(stdout, stderr, returncode, exc)))

    def add_json(self, prefix, data, returncode=0):
        self.add(prefix, stdout=json.dumps(data), returncode=returncode)

    def commands(self, head: str) -> list[list[str]]:
        return [c for c in self.calls if c and c[0] == head]

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append(kwargs)
        for prefix, response in self._responses:
            if cmd[: len(prefix)] == prefix:
                if response.exc is not None:
                    raise response.exc
                return subprocess.CompletedProcess(cmd, response.returncode, response.stdout, response.stderr)
        return subprocess.CompletedProcess(cmd, 0, "", "")


@pytest.fixture
def fake_run(monkeypatch):
    """Replace subprocess.run for every module that shells out."""
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake
