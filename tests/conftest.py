"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import json
import textwrap
import urllib.request
from pathlib import Path

import pytest

from modsync.core.context import WorkspaceContext
from modsync.core.models.tracked_file import TrackedFile
from modsync.core.services.remote_session import (
    AuthenticationError,
    Credentials,
    LoginResult,
)

POM_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <properties>
    <simplicite.url>{url}</simplicite.url>
  </properties>
</project>
"""


def make_module_folder(root: Path, folder: str, name: str, url: str) -> Path:
    """Create a workspace folder holding a module-info.json and a pom.xml."""
    path = root / folder
    path.mkdir(parents=True, exist_ok=True)
    (path / "module-info.json").write_text(f'{{"name": "{name}"}}')
    (path / "pom.xml").write_text(POM_TEMPLATE.format(url=url))
    src = path / "src" / "com" / "example"
    src.mkdir(parents=True, exist_ok=True)
    (src / f"{name.capitalize()}Object.java").write_text("class X {}\n")
    return path


class FakeSession:
    """In-memory stand-in for a remote instance."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.valid_tokens: set[str] = set()
        self.accepted = Credentials(username="designer", password="secret")
        self.issued = 0
        self.uploaded: list[TrackedFile] = []
        self.upload_failures: set[str] = set()
        self.compile_error: str | None = None
        self.compiled = 0
        self.logged_out = 0

    def login(self, *, token=None, credentials=None) -> LoginResult:
        if token is not None:
            if token not in self.valid_tokens:
                raise AuthenticationError("Invalid token", invalid_token=True)
            return LoginResult(token=token, login="designer")
        if credentials != self.accepted:
            raise AuthenticationError("Wrong username or password")
        self.issued += 1
        new_token = f"tok-{self.issued}"
        self.valid_tokens.add(new_token)
        return LoginResult(token=new_token, login=credentials.username)

    def logout(self, *, token=None) -> str:
        self.logged_out += 1
        self.valid_tokens.discard(token)
        return "Logged out"

    def upload(self, tracked: TrackedFile) -> None:
        if tracked.file_name in self.upload_failures:
            raise RuntimeError(f"upload refused for {tracked.file_name}")
        self.uploaded.append(tracked)

    def compile(self) -> str:
        self.compiled += 1
        if self.compile_error:
            raise RuntimeError(self.compile_error)
        return "Compilation succeeded"


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


@pytest.fixture
def requests_seen(monkeypatch):
    """Capture outgoing HTTP requests; reply with the queued payloads."""
    seen: list[urllib.request.Request] = []
    replies: list = []

    def fake_urlopen(req, timeout=None):
        seen.append(req)
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return _Response(json.dumps(reply).encode())

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    return seen, replies


@pytest.fixture
def sessions() -> dict[str, FakeSession]:
    """Every FakeSession created during a test, keyed by URL."""
    return {}


@pytest.fixture
def session_factory(sessions: dict[str, FakeSession]):
    def factory(url: str) -> FakeSession:
        session = sessions.get(url) or FakeSession(url)
        sessions[url] = session
        return session
    return factory


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """A workspace with two modules on one instance and one on another."""
    root = tmp_path / "workspace"
    make_module_folder(root, "crm", "crm", "https://i1.example.com")
    make_module_folder(root, "billing", "billing", "https://i1.example.com")
    make_module_folder(root, "portal", "portal", "https://i2.example.com")
    (root / "modsync.yml").write_text(textwrap.dedent("""\
        name: test-workspace
        folders:
          - crm
          - billing
          - portal
    """))
    return root


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "state.json"


@pytest.fixture
def ctx(workspace_root: Path, state_path: Path, session_factory) -> WorkspaceContext:
    """A loaded context whose modules have been discovered."""
    from modsync.core.use_cases.discover import run_discover

    context = WorkspaceContext.load(
        workspace_root / "modsync.yml",
        state_path=state_path,
        session_factory=session_factory,
    )
    run_discover(context, save=False)
    return context
