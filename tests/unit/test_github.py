"""Unit tests for reposcope.github - pagination, error mapping, soft failures."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import httpx
import pytest

from reposcope.config import GitHubSettings
from reposcope.exceptions import (
    AnalysisCancelledError,
    GitHubAPIError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    GitHubUnprocessableError,
)
from reposcope.github import (
    GitHubClient,
    _gather_all,
    is_rate_limited,
    map_github_error,
    parse_package_json,
    parse_requirements,
)
from reposcope.models import FileRecord, RepositoryRef

if TYPE_CHECKING:
    from collections.abc import Callable

REF = RepositoryRef(owner="acme", name="widgets")
REPO = "/repos/acme/widgets"


def _contributors(count: int) -> list[dict[str, Any]]:
    return [
        {"login": f"user{i}", "contributions": i + 1, "type": "User"}
        for i in range(count)
    ]


def _commits(count: int) -> list[dict[str, Any]]:
    return [
        {
            "sha": f"{i:040x}",
            "commit": {"message": f"change {i}", "author": {"name": "Alice"}},
            "author": {"login": "alice"},
        }
        for i in range(count)
    ]


@pytest.fixture()
def make_client(fake_github: Any) -> Callable[..., GitHubClient]:
    def _make(token: str | None = None, **settings: Any) -> GitHubClient:
        return GitHubClient(
            GitHubSettings(**settings), token, transport=fake_github.transport()
        )

    return _make


# ---- Pagination --------------------------------------------------------------


class TestPagination:
    """Link-header pagination returns every item exactly once."""

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        ("per_page", "total"),
        [(2, 5), (2, 4), (3, 1), (100, 3), (1, 6), (5, 0)],
    )
    async def test_contributors_complete(
        self,
        fake_github: Any,
        make_client: Callable[..., GitHubClient],
        per_page: int,
        total: int,
    ) -> None:
        fake_github.add_list(f"{REPO}/contributors", _contributors(total))
        async with make_client(per_page=per_page, max_contributor_pages=50) as client:
            items = await client.paginate(
                f"{REPO}/contributors", resource="contributors", ref=REF
            )
            contributors = await client.list_contributors(REF)

        assert [item["login"] for item in items] == [
            f"user{i}" for i in range(total)
        ]
        assert [c.login for c in contributors] == [
            f"user{i}" for i in reversed(range(total))
        ]

    @pytest.mark.asyncio()
    async def test_contributors_sorted_descending(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/contributors", _contributors(4))
        async with make_client(per_page=2) as client:
            contributors = await client.list_contributors(REF)
        counts = [c.contributions for c in contributors]
        assert counts == sorted(counts, reverse=True)

    @pytest.mark.asyncio()
    async def test_max_pages_respected(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/contributors", _contributors(10))
        async with make_client(per_page=2, max_contributor_pages=2) as client:
            contributors = await client.list_contributors(REF)
        assert len(contributors) == 4
        assert len(fake_github.requests) == 2

    @pytest.mark.asyncio()
    async def test_commit_limit_spans_pages(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(20))
        async with make_client(per_page=3, max_commits=7) as client:
            commits = await client.list_commits(REF, sha="main")

        assert [c.message for c in commits] == [f"change {i}" for i in range(7)]
        first = fake_github.requests[0]
        assert first.url.params["sha"] == "main"
        assert first.url.params["per_page"] == "3"

    @pytest.mark.asyncio()
    async def test_commit_page_size_shrinks_to_limit(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(10))
        async with make_client(max_commits=5) as client:
            commits = await client.list_commits(REF)
        assert len(commits) == 5
        assert len(fake_github.requests) == 1
        assert commits[0].author_login == "alice"

    @pytest.mark.asyncio()
    async def test_non_list_page_rejected(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(f"{REPO}/contributors", {"message": "oops"})
        async with make_client() as client:
            with pytest.raises(GitHubAPIError, match="expected a list"):
                await client.list_contributors(REF)


# ---- Error mapping -----------------------------------------------------------


def _response(
    status: int, message: str = "", headers: dict[str, str] | None = None
) -> httpx.Response:
    return httpx.Response(status, json={"message": message}, headers=headers)


class TestMapGitHubError:
    """Failed responses map onto typed errors with remediation text."""

    def _map(self, response: httpx.Response, *, has_token: bool) -> GitHubAPIError:
        return map_github_error(
            response,
            resource="contributors",
            repository="acme/widgets",
            has_token=has_token,
        )

    def test_rate_limit_without_token(self) -> None:
        response = _response(
            403,
            "API rate limit exceeded",
            {"x-ratelimit-remaining": "0", "x-ratelimit-limit": "60"},
        )
        exc = self._map(response, has_token=False)
        assert isinstance(exc, GitHubRateLimitError)
        assert "rate limit" in str(exc)
        assert "Personal Access Token" in str(exc)
        assert "60 to 5,000" in str(exc)
        assert "contributors" in str(exc)
        assert "acme/widgets" in str(exc)
        assert "Rate limit: 0/60 requests remaining." in str(exc)

    def test_rate_limit_with_token(self) -> None:
        exc = self._map(
            _response(403, "", {"x-ratelimit-remaining": "0"}), has_token=True
        )
        assert isinstance(exc, GitHubRateLimitError)
        assert "even with a token" in str(exc)

    def test_rate_limit_reset_time(self) -> None:
        exc = self._map(
            _response(
                403,
                "",
                {
                    "x-ratelimit-remaining": "0",
                    "x-ratelimit-limit": "60",
                    "x-ratelimit-reset": "0",
                },
            ),
            has_token=False,
        )
        assert "Resets at 1970-01-01 00:00:00 UTC." in str(exc)

    def test_429_is_rate_limit(self) -> None:
        exc = self._map(_response(429), has_token=True)
        assert isinstance(exc, GitHubRateLimitError)

    def test_401_is_auth(self) -> None:
        exc = self._map(_response(401, "Bad credentials"), has_token=True)
        assert isinstance(exc, GitHubAuthError)
        assert exc.status == 401

    def test_403_bad_credentials_is_auth(self) -> None:
        exc = self._map(_response(403, "Bad credentials"), has_token=True)
        assert isinstance(exc, GitHubAuthError)

    def test_plain_403_is_permission(self) -> None:
        exc = self._map(_response(403, "Resource not accessible"), has_token=True)
        assert isinstance(exc, GitHubPermissionError)
        assert "repo scope" in str(exc)

    def test_plain_403_without_token_suggests_token(self) -> None:
        exc = self._map(_response(403, "Forbidden"), has_token=False)
        assert "configure a GitHub Personal Access Token" in str(exc)

    def test_404_is_not_found(self) -> None:
        exc = self._map(_response(404, "Not Found"), has_token=False)
        assert isinstance(exc, GitHubNotFoundError)
        assert "acme/widgets not found" in str(exc)
        assert exc.resource == "contributors"

    def test_422_is_unprocessable(self) -> None:
        exc = self._map(_response(422, "No commit found for SHA"), has_token=True)
        assert isinstance(exc, GitHubUnprocessableError)
        assert "No commit found for SHA" in str(exc)

    def test_other_status_is_base_error(self) -> None:
        exc = self._map(_response(502, "Bad gateway"), has_token=False)
        assert type(exc) is GitHubAPIError
        assert "(502)" in str(exc)

    def test_is_rate_limited_message_only(self) -> None:
        assert is_rate_limited(_response(403), "secondary rate limit exceeded")
        assert not is_rate_limited(_response(404), "rate limit")


class TestClientErrors:
    """Client requests raise typed errors for mandatory resources."""

    @pytest.mark.asyncio()
    async def test_repository_not_found(
        self, make_client: Callable[..., GitHubClient]
    ) -> None:
        async with make_client() as client:
            with pytest.raises(GitHubNotFoundError) as exc_info:
                await client.get_repository(REF)
        assert exc_info.value.resource == "repository"
        assert exc_info.value.repository == "acme/widgets"

    @pytest.mark.asyncio()
    async def test_transport_failure(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        def _boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fake_github.add_handler(REPO, _boom)
        async with make_client() as client:
            with pytest.raises(GitHubAPIError) as exc_info:
                await client.get_repository(REF)
        assert exc_info.value.status is None

    @pytest.mark.asyncio()
    async def test_cancelled_before_request(self, fake_github: Any) -> None:
        client = GitHubClient(
            GitHubSettings(),
            transport=fake_github.transport(),
            is_cancelled=lambda: True,
        )
        async with client:
            with pytest.raises(AnalysisCancelledError):
                await client.get_repository(REF)
        assert fake_github.requests == []

    @pytest.mark.asyncio()
    async def test_bearer_header_sent(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(REPO, {"name": "widgets", "full_name": "acme/widgets"})
        async with make_client("ghp_abc") as client:
            snapshot = await client.get_repository(REF)
        assert snapshot.full_name == "acme/widgets"
        assert fake_github.requests[0].headers["Authorization"] == "Bearer ghp_abc"

    @pytest.mark.asyncio()
    async def test_settings_token_fallback(self, fake_github: Any) -> None:
        fake_github.add(REPO, {"name": "widgets", "full_name": "acme/widgets"})
        client = GitHubClient(
            GitHubSettings(token="ghp_settings"), transport=fake_github.transport()
        )
        async with client:
            await client.get_repository(REF)
        assert client.has_token
        assert fake_github.requests[0].headers["Authorization"] == "Bearer ghp_settings"


# ---- Secondary resources -----------------------------------------------------


class TestSoftFailures:
    """Secondary resources degrade to empty values."""

    @pytest.mark.asyncio()
    async def test_languages_failure_is_empty(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(f"{REPO}/languages", {"message": "boom"}, status=500)
        async with make_client() as client:
            assert await client.get_languages(REF) == {}

    @pytest.mark.asyncio()
    async def test_tree_failure_is_empty(
        self, make_client: Callable[..., GitHubClient]
    ) -> None:
        async with make_client() as client:
            assert await client.get_tree(REF, "main") == []

    @pytest.mark.asyncio()
    async def test_tree_keeps_blobs_only(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(
            f"{REPO}/git/trees/main",
            {
                "tree": [
                    {"path": "src", "type": "tree"},
                    {"path": "src/app.py", "type": "blob", "size": 10},
                ]
            },
        )
        async with make_client() as client:
            files = await client.get_tree(REF, "main")
        assert [f.path for f in files] == ["src/app.py"]
        assert fake_github.requests[0].url.params["recursive"] == "1"

    @pytest.mark.asyncio()
    async def test_list_directory(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(
            f"{REPO}/contents/",
            [
                {"path": "README.md", "type": "file", "size": 20},
                {"path": "src", "type": "dir"},
            ],
        )
        async with make_client() as client:
            files = await client.list_directory(REF)
        assert [f.path for f in files] == ["README.md"]

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "path",
        [f"{REPO}/languages", f"{REPO}/git/trees/main", f"{REPO}/contents/"],
    )
    async def test_non_json_body_is_empty(
        self,
        fake_github: Any,
        make_client: Callable[..., GitHubClient],
        path: str,
    ) -> None:
        fake_github.add_handler(
            path, lambda request: httpx.Response(200, content=b"<html>oops</html>")
        )
        async with make_client() as client:
            assert await client.get_languages(REF) == {}
            assert await client.get_tree(REF, "main") == []
            assert await client.list_directory(REF) == []

    @pytest.mark.asyncio()
    async def test_tree_list_body_is_empty(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(f"{REPO}/git/trees/main", [{"path": "a.py"}])
        async with make_client() as client:
            assert await client.get_tree(REF, "main") == []

    @pytest.mark.asyncio()
    async def test_languages_skip_non_numeric_counts(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(
            f"{REPO}/languages", {"Python": 2048, "Go": "12", "Shell": None}
        )
        async with make_client() as client:
            assert await client.get_languages(REF) == {"Python": 2048, "Go": 12}


class TestContents:
    """File content fetching and prioritization."""

    @pytest.mark.asyncio()
    async def test_binary_skipped_without_request(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        async with make_client() as client:
            assert await client.get_file_content(REF, "assets/logo.PNG") == ""
        assert fake_github.requests == []

    @pytest.mark.asyncio()
    async def test_base64_decoded(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_file(REPO, "src/app.py", "print('hi')\n")
        async with make_client() as client:
            text = await client.get_file_content(REF, "src/app.py")
        assert text == "print('hi')\n"

    def test_select_content_subset_priority(self) -> None:
        client = GitHubClient(GitHubSettings(max_content_files=3, max_file_size=1000))
        files = [
            FileRecord(path="README.md", size=10),
            FileRecord(path="config.yaml", size=10),
            FileRecord(path="big.py", size=5000),
            FileRecord(path="empty.py", size=0),
            FileRecord(path="logo.png", size=10),
            FileRecord(path="b.py", size=10),
            FileRecord(path="a.ts", size=10),
        ]
        chosen = [f.path for f in client.select_content_subset(files)]
        assert chosen == ["b.py", "a.ts", "config.yaml"]

    @pytest.mark.asyncio()
    async def test_fetch_contents_keeps_order(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_file(REPO, "a.py", "a = 1\n")
        fake_github.add(f"{REPO}/contents/b.py", {"message": "boom"}, status=500)
        files = [
            FileRecord(path="README.md", size=10),
            FileRecord(path="a.py", size=6),
            FileRecord(path="b.py", size=6),
        ]
        async with make_client() as client:
            result = await client.fetch_contents(REF, files)

        assert [f.path for f in result] == ["README.md", "a.py", "b.py"]
        assert result[1].content == "a = 1\n"
        assert result[2].content is None

    @pytest.mark.asyncio()
    async def test_non_json_content_is_empty(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_handler(
            f"{REPO}/contents/a.py", lambda request: httpx.Response(200, text="a=1")
        )
        async with make_client() as client:
            assert await client.get_file_content(REF, "a.py") == ""

    @pytest.mark.asyncio()
    async def test_fetch_contents_stops_when_cancelled(
        self, fake_github: Any
    ) -> None:
        cancelled = False

        def _cancel_after_first(request: httpx.Request) -> httpx.Response:
            nonlocal cancelled
            cancelled = True
            return httpx.Response(404, json={"message": "Not Found"})

        for name in ("a.py", "b.py", "c.py"):
            fake_github.add_handler(f"{REPO}/contents/{name}", _cancel_after_first)
        client = GitHubClient(
            GitHubSettings(content_concurrency=1),
            transport=fake_github.transport(),
            is_cancelled=lambda: cancelled,
        )
        files = [FileRecord(path=name, size=6) for name in ("a.py", "b.py", "c.py")]
        async with client:
            with pytest.raises(AnalysisCancelledError):
                await client.fetch_contents(REF, files)
        assert len(fake_github.requests) == 1

    @pytest.mark.asyncio()
    async def test_dependencies_merged(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_file(
            REPO,
            "package.json",
            '{"dependencies": {"express": "^4.18.0"},'
            ' "devDependencies": {"jest": "^29.0.0"}}',
        )
        fake_github.add_file(REPO, "requirements.txt", "fastapi>=0.110\n")
        async with make_client() as client:
            info = await client.get_dependencies(
                REF, {"package.json", "requirements.txt"}
            )
        assert info.dependencies == {"express": "^4.18.0", "fastapi": ">=0.110"}
        assert info.dev_dependencies == {"jest": "^29.0.0"}

    @pytest.mark.asyncio()
    async def test_dependencies_skip_absent_manifests(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        async with make_client() as client:
            info = await client.get_dependencies(REF, set())
        assert info.dependencies == {}
        assert fake_github.requests == []


class TestVerifyToken:
    """verify_token calls GET /user."""

    @pytest.mark.asyncio()
    async def test_no_token(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        async with make_client() as client:
            assert await client.verify_token() is False
        assert fake_github.requests == []

    @pytest.mark.asyncio()
    async def test_accepted(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add("/user", {"login": "alice"})
        async with make_client("ghp_good") as client:
            assert await client.verify_token() is True

    @pytest.mark.asyncio()
    async def test_rejected(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add("/user", {"message": "Bad credentials"}, status=401)
        async with make_client("ghp_bad") as client:
            assert await client.verify_token() is False

    @pytest.mark.asyncio()
    async def test_rejected_token_logged_redacted(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add("/user", {"message": "Bad credentials"}, status=401)
        with patch("reposcope.github.logger") as log:
            async with make_client("ghp_0123456789abcdWXYZ") as client:
                await client.verify_token()

        assert log.debug.call_args.kwargs["token"] == "***WXYZ"
        assert log.info.call_args.kwargs["token"] == "***WXYZ"
        assert "ghp_0123456789abcdWXYZ" not in repr(log.mock_calls)

    @pytest.mark.asyncio()
    async def test_server_error_propagates(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add("/user", {"message": "down"}, status=503)
        async with make_client("ghp_good") as client:
            with pytest.raises(GitHubAPIError):
                await client.verify_token()


# ---- Commit details ----------------------------------------------------------


def _detail(index: int, *paths: str) -> dict[str, Any]:
    return {**_commits(index + 1)[index], "files": [{"filename": p} for p in paths]}


class TestCommitDetails:
    """fetch_commit_details fills changed paths for the newest commits."""

    @pytest.mark.asyncio()
    async def test_files_attached_in_order(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(4))
        fake_github.add(f"{REPO}/commits/{0:040x}", _detail(0, "a.py", "b.py"))
        fake_github.add(f"{REPO}/commits/{1:040x}", _detail(1, "a.py"))
        async with make_client() as client:
            listed = await client.list_commits(REF)
            commits = await client.fetch_commit_details(REF, listed, limit=2)

        assert [c.sha for c in commits] == [c.sha for c in listed]
        assert [c.files for c in commits] == [["a.py", "b.py"], ["a.py"], [], []]
        detail_paths = [p for p in fake_github.paths() if p.count("/") == 5]
        assert len(detail_paths) == 2

    @pytest.mark.asyncio()
    async def test_limit_defaults_to_settings(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(5))
        async with make_client(max_commit_details=3) as client:
            listed = await client.list_commits(REF)
            await client.fetch_commit_details(REF, listed)
        assert len(fake_github.requests) == 1 + 3

    @pytest.mark.asyncio()
    async def test_zero_limit_makes_no_requests(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(2))
        async with make_client(max_commit_details=0) as client:
            listed = await client.list_commits(REF)
            assert await client.fetch_commit_details(REF, listed) == listed
        assert len(fake_github.requests) == 1

    @pytest.mark.asyncio()
    async def test_failures_keep_listed_commit(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add_list(f"{REPO}/commits", _commits(3))
        fake_github.add(f"{REPO}/commits/{0:040x}", {"message": "boom"}, status=502)
        fake_github.add_handler(
            f"{REPO}/commits/{1:040x}",
            lambda request: httpx.Response(200, content=b"not json"),
        )
        fake_github.add(f"{REPO}/commits/{2:040x}", _detail(2, "c.py"))
        async with make_client() as client:
            listed = await client.list_commits(REF)
            commits = await client.fetch_commit_details(REF, listed)

        assert commits[0] == listed[0]
        assert commits[1] == listed[1]
        assert commits[2].files == ["c.py"]

    @pytest.mark.asyncio()
    async def test_commit_details_non_object_raises(
        self, fake_github: Any, make_client: Callable[..., GitHubClient]
    ) -> None:
        fake_github.add(f"{REPO}/commits/abc1234", ["not", "a", "commit"])
        async with make_client() as client:
            with pytest.raises(GitHubAPIError, match="commit abc1234"):
                await client.get_commit_details(REF, "abc1234")


class TestGatherAll:
    """_gather_all cancels outstanding work when one coroutine fails."""

    @pytest.mark.asyncio()
    async def test_results_in_order(self) -> None:
        async def _value(delay: float, value: int) -> int:
            await asyncio.sleep(delay)
            return value

        assert await _gather_all([_value(0.02, 1), _value(0, 2)]) == [1, 2]

    @pytest.mark.asyncio()
    async def test_siblings_cancelled_on_error(self) -> None:
        started = asyncio.Event()
        outcome: list[str] = []

        async def _slow() -> None:
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                outcome.append("cancelled")
                raise
            outcome.append("finished")

        async def _fail() -> None:
            await started.wait()
            raise AnalysisCancelledError("stop")

        with pytest.raises(AnalysisCancelledError):
            await _gather_all([_slow(), _fail()])
        assert outcome == ["cancelled"]


# ---- Manifest parsing --------------------------------------------------------


class TestManifestParsing:
    """package.json and requirements.txt readers."""

    def test_requirements(self) -> None:
        text = (
            "# pinned\n"
            "-r base.txt\n"
            "flask\n"
            "uvicorn[standard]==0.29  # server\n"
            "requests>=2.0 ; python_version > '3.8'\n"
        )
        assert parse_requirements(text) == {
            "flask": "*",
            "uvicorn": "==0.29",
            "requests": ">=2.0",
        }

    def test_package_json_invalid(self) -> None:
        assert parse_package_json("{not json").dependencies == {}

    def test_package_json_non_object(self) -> None:
        assert parse_package_json("[1, 2]").dev_dependencies == {}
