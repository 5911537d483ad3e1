"""
narrowssh Test Configuration
----------------------------
Shared fixtures and configuration for all tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root and tests directory to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

from mock_workspace import MockWorkspace


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep NARROWSSH_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.startswith("NARROWSSH_"):
            monkeypatch.delenv(name)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def ws(tmp_path):
    """An empty mock workspace."""
    return MockWorkspace(tmp_path)


@pytest.fixture
def system_ws(ws):
    """A mock workspace with a handful of users, as on a typical system."""
    ws.add_user(0, "root", "root")
    ws.add_user(1, "daemon", "daemon-home")
    ws.add_user(1000, "alice", "home/alice")
    ws.add_user(1001, "bob", "home/bob")
    ws.add_user(1002, "charlie", "home/charlie")
    ws.add_user(1003, "dan", "home/dan")
    return ws
