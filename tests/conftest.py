"""Shared pytest fixtures for the reposcope test suite."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from reposcope.config import Settings
from reposcope.models import FileRecord, ProviderId, RepositorySnapshot

# ---------------------------------------------------------------------------
# Fake GitHub API
# ---------------------------------------------------------------------------

API_ROOT = "https://api.github.com"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeGitHub:
    """Route table served through ``httpx.MockTransport``.

    Unknown paths answer 404 like the real API. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []

    # -- registration --------------------------------------------------

    def add(
        self,
        path: str,
        payload: Any = None,
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json=payload, headers=headers)

        self.routes[path] = _handler

    def add_handler(self, path: str, handler: Handler) -> None:
        self.routes[path] = handler

    def add_list(self, path: str, items: list[dict[str, Any]]) -> None:
        """Serve ``items`` with ``page``/``per_page`` pagination and Link headers."""

        def _handler(request: httpx.Request) -> httpx.Response:
            per_page = int(request.url.params.get("per_page", "30"))
            page = int(request.url.params.get("page", "1"))
            start = (page - 1) * per_page
            chunk = items[start : start + per_page]
            headers: dict[str, str] = {}
            if start + per_page < len(items):
                next_url = f"{API_ROOT}{path}?per_page={per_page}&page={page + 1}"
                headers["Link"] = f'<{next_url}>; rel="next"'
            return httpx.Response(200, json=chunk, headers=headers)

        self.routes[path] = _handler

    def add_file(self, repo_path: str, file_path: str, content: str) -> None:
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        self.add(
            f"{repo_path}/contents/{file_path}",
            {"type": "file", "path": file_path, "content": encoded},
        )

    # -- transport -----------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def repository_payload(owner: str = "acme", name: str = "widgets") -> dict[str, Any]:
    return {
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": "Widgets for everyone",
        "language": "Python",
        "stargazers_count": 42,
        "forks_count": 7,
        "watchers_count": 42,
        "default_branch": "main",
        "size": 120,
        "open_issues_count": 3,
        "license": {"name": "MIT License", "spdx_id": "MIT"},
        "created_at": "2023-01-01T00:00:00Z",
        "updated_at": "2024-05-01T00:00:00Z",
        "html_url": f"https://github.com/{owner}/{name}",
    }


def contributor_payload(login: str, contributions: int) -> dict[str, Any]:
    return {
        "login": login,
        "contributions": contributions,
        "avatar_url": f"https://avatars.example/{login}",
        "html_url": f"https://github.com/{login}",
        "type": "User",
    }


def commit_payload(index: int, login: str = "alice") -> dict[str, Any]:
    return {
        "sha": f"{index:040x}",
        "commit": {
            "message": f"Commit number {index}",
            "author": {
                "name": login.title(),
                "email": f"{login}@example.com",
                "date": "2024-04-01T12:00:00Z",
            },
        },
        "author": {"login": login},
    }


def commit_detail_payload(
    index: int, files: list[str], login: str = "alice"
) -> dict[str, Any]:
    """Single-commit payload; unlike the listing it names the changed files."""
    return {
        **commit_payload(index, login),
        "files": [{"filename": path, "status": "modified"} for path in files],
    }


APP_SOURCE = '''\
import os


def load_settings(path):
    if not path:
        return {}
    for line in open(path):
        if line.startswith("#"):
            continue
    return {"path": path}


def main():
    settings = load_settings(os.environ.get("APP_CONFIG"))
    if settings and settings.get("path"):
        print(settings)
'''

TEST_SOURCE = '''\
from app import load_settings


def test_load_settings_empty():
    assert load_settings("") == {}
'''


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def widgets_github(fake_github: FakeGitHub) -> FakeGitHub:
    """``acme/widgets``: 3 contributors at 50/30/20, 10 commits, two files.

    Every commit touches ``app.py``; even-numbered ones also touch the test.
    """
    repo = "/repos/acme/widgets"
    fake_github.add(repo, repository_payload())
    fake_github.add_list(
        f"{repo}/contributors",
        [
            contributor_payload("alice", 50),
            contributor_payload("bob", 30),
            contributor_payload("carol", 20),
        ],
    )
    fake_github.add_list(
        f"{repo}/commits", [commit_payload(i) for i in range(10)]
    )
    for i in range(10):
        touched = ["app.py", "tests/test_app.py"] if i % 2 == 0 else ["app.py"]
        fake_github.add(
            f"{repo}/commits/{commit_payload(i)['sha']}",
            commit_detail_payload(i, touched),
        )
    fake_github.add(f"{repo}/languages", {"Python": 2048})
    fake_github.add(
        f"{repo}/git/trees/main",
        {
            "truncated": False,
            "tree": [
                {"path": "app.py", "type": "blob", "size": len(APP_SOURCE)},
                {"path": "tests", "type": "tree"},
                {"path": "tests/test_app.py", "type": "blob", "size": len(TEST_SOURCE)},
                {"path": "logo.png", "type": "blob", "size": 512},
            ],
        },
    )
    fake_github.add_file(repo, "app.py", APP_SOURCE)
    fake_github.add_file(repo, "tests/test_app.py", TEST_SOURCE)
    return fake_github


# ---------------------------------------------------------------------------
# Settings and model factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> Settings:
    """Settings with zero retry delay and a short keep-alive."""
    return Settings(
        enrichment={"base_delay_seconds": 0.0, "max_attempts": 4},
        api={"keepalive_seconds": 5.0},
    )


@pytest.fixture()
def snapshot() -> RepositorySnapshot:
    return RepositorySnapshot(
        name="widgets",
        full_name="acme/widgets",
        description="Widgets for everyone",
        language="Python",
        stars=42,
        default_branch="main",
        html_url="https://github.com/acme/widgets",
    )


@pytest.fixture()
def sample_files() -> list[FileRecord]:
    return [
        FileRecord(path="app.py", size=len(APP_SOURCE)).with_content(APP_SOURCE),
        FileRecord(path="tests/test_app.py", size=len(TEST_SOURCE)).with_content(
            TEST_SOURCE
        ),
        FileRecord(path="README.md", size=10),
    ]


# ---------------------------------------------------------------------------
# Text providers
# ---------------------------------------------------------------------------


class ScriptedProvider:
    """Text provider whose ``generate_text`` is an ``AsyncMock``."""

    provider_id = ProviderId.OPENAI
    model_id = "scripted-model"

    def __init__(self, side_effect: Any) -> None:
        self.generate_text = AsyncMock(side_effect=side_effect)


def canned_reply(prompt: str, max_output_tokens: int) -> str:
    """Answer each enrichment prompt with a plausible, parseable reply."""
    if "algorithmic complexity" in prompt:
        return json.dumps(
            {
                "complexity": "O(n^2)",
                "runtime": "Quadratic in the number of lines",
                "recommendation": "Read the file once",
            }
        )
    if "refactoring roadmap" in prompt:
        return json.dumps(
            [
                {"priority": 2, "title": "Add tests", "effort": "Small"},
                {"priority": 1, "title": "Split load_settings", "files": ["app.py"]},
            ]
        )
    if "executive summary" in prompt:
        return "Widgets is a small settings loader."
    if "architecture" in prompt:
        return "A single-module script with one test."
    if "security review" in prompt:
        return "No secrets were found in the sampled paths."
    if "hotspot" in prompt:
        return "Six near-identical branches; fold them into a lookup table."
    return "Reads the settings file line by line."


@pytest.fixture()
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider(canned_reply)


@pytest.fixture()
def failing_provider() -> ScriptedProvider:
    return ScriptedProvider(RuntimeError("provider overloaded"))
