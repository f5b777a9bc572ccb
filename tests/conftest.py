"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point the API at a throwaway database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from securescan.scanners.base import BaseScanner


class StaticScanner(BaseScanner):
    """Adapter double that returns canned findings or raises."""

    def __init__(self, name="static", findings=None, error=None, on_scan=None):
        super().__init__(name=name)
        self.findings = findings or []
        self.error = error
        self.on_scan = on_scan
        self.calls = []

    def scan(self, repo_path):
        self.calls.append(repo_path)
        if self.on_scan:
            self.on_scan()
        if self.error:
            raise self.error
        return list(self.findings)


@pytest.fixture
def working_copy(tmp_path):
    """A small repository checkout on disk."""
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / ".git").mkdir()
    (repo / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (repo / "src" / "app.js").write_text("const x = 1;\neval(input);\n")
    (repo / "README.md").write_text("# demo\n")
    return repo


@pytest.fixture
def static_scanner():
    """Factory for :class:`StaticScanner` doubles."""
    return StaticScanner
