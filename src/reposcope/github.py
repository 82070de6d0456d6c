"""Async GitHub REST client with Link-header pagination and typed errors.

Mandatory resources (repository, contributors, commits) raise a
``GitHubAPIError`` subclass carrying a user-facing message that names the
resource and repository. Secondary resources (languages, tree, directory
listings, file contents, dependency manifests) log failures and return an
empty value instead.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

import httpx
import structlog

from reposcope.exceptions import (
    AnalysisCancelledError,
    GitHubAPIError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    GitHubUnprocessableError,
)
from reposcope.logging import redact_secret
from reposcope.models import (
    Commit,
    Contributor,
    DependencyInfo,
    FileRecord,
    LicenseInfo,
    RepositoryRef,
    RepositorySnapshot,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Iterable

    from reposcope.config import GitHubSettings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_T = TypeVar("_T")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_ACCEPT_HEADER = "application/vnd.github+json"
_API_VERSION = "2022-11-28"
_LOW_RATE_LIMIT_WARNING = 10

_BINARY_EXTENSIONS = frozenset(
    {"png", "jpg", "jpeg", "gif", "svg", "ico", "pdf", "zip", "tar", "gz", "woff"}
)

# Content-fetch priority: lower index is fetched first
_CONTENT_CATEGORIES: tuple[frozenset[str], ...] = (
    frozenset(
        {"js", "ts", "jsx", "tsx", "py", "java", "cpp", "c", "cs", "go", "rs"}
        | {"php", "rb", "kt", "swift"}
    ),
    frozenset({"json", "yml", "yaml", "toml", "ini", "env"}),
    frozenset({"md", "txt", "rst"}),
)

_REQUIREMENT_RE = re.compile(
    r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(.*)$"
)


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def _content_priority(path: str) -> int | None:
    ext = _extension(path)
    for index, category in enumerate(_CONTENT_CATEGORIES):
        if ext in category:
            return index
    return None


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _upstream_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text.strip() or response.reason_phrase
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason_phrase


def _rate_limit_suffix(headers: httpx.Headers) -> str:
    limit = headers.get("x-ratelimit-limit")
    remaining = headers.get("x-ratelimit-remaining")
    if not limit or remaining is None:
        return ""
    suffix = f" Rate limit: {remaining}/{limit} requests remaining."
    reset = headers.get("x-ratelimit-reset")
    if reset and reset.isdigit():
        reset_at = datetime.fromtimestamp(int(reset), tz=UTC)
        suffix += f" Resets at {reset_at.strftime('%Y-%m-%d %H:%M:%S UTC')}."
    return suffix


def is_rate_limited(response: httpx.Response, message: str = "") -> bool:
    """Return whether a failed response carries a rate-limit indicator."""
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    return "rate limit" in message.lower()


def map_github_error(
    response: httpx.Response,
    *,
    resource: str,
    repository: str,
    has_token: bool,
) -> GitHubAPIError:
    """Translate a failed GitHub response into a typed error.

    Args:
        response: The non-2xx response.
        resource: What was being fetched (``"contributors"``).
        repository: ``owner/name`` of the repository.
        has_token: Whether the request was authenticated, which changes the
            remediation advice.

    Returns:
        The exception to raise; the caller raises it.
    """
    status = response.status_code
    message = _upstream_message(response)
    context = f"while fetching {resource} for {repository}"
    error_cls: type[GitHubAPIError]

    if is_rate_limited(response, message):
        error_cls = GitHubRateLimitError
        if has_token:
            text = (
                f"GitHub API rate limit exceeded {context} even with a token. "
                "The token may be invalid, expired, revoked, or missing the "
                "required scopes. Please check your GitHub Personal Access Token."
            )
        else:
            text = (
                f"GitHub API rate limit exceeded {context}. Please configure a "
                "valid GitHub Personal Access Token to increase your rate limit "
                "from 60 to 5,000 requests per hour."
            )
    elif status == 401 or (status == 403 and "bad credentials" in message.lower()):
        error_cls = GitHubAuthError
        text = (
            f"Authentication failed with GitHub {context}. Please check your "
            "GitHub Personal Access Token."
        )
    elif status == 403:
        error_cls = GitHubPermissionError
        advice = (
            "Your GitHub token may lack necessary permissions (e.g. repo scope "
            "for private repositories)."
            if has_token
            else "Please configure a GitHub Personal Access Token to access this "
            "repository."
        )
        text = f"Access forbidden {context}. {advice}"
    elif status == 404:
        error_cls = GitHubNotFoundError
        text = (
            f"Repository {repository} not found {context}. Please check the URL "
            "and ensure the repository exists and is accessible."
        )
    elif status == 422:
        error_cls = GitHubUnprocessableError
        text = (
            f"Invalid request to GitHub API {context}. The repository might be "
            f"empty or the reference malformed: {message}."
        )
    else:
        error_cls = GitHubAPIError
        text = f"GitHub API error ({status}) {context}: {message}."
        if not has_token:
            text += (
                " Consider adding a GitHub Personal Access Token for better"
                " reliability."
            )

    text += _rate_limit_suffix(response.headers)
    return error_cls(text, status=status, resource=resource, repository=repository)


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def _parse_snapshot(payload: dict[str, Any]) -> RepositorySnapshot:
    license_payload = payload.get("license")
    license_info = (
        LicenseInfo(
            name=str(license_payload.get("name") or ""),
            spdx_id=license_payload.get("spdx_id"),
        )
        if isinstance(license_payload, dict)
        else None
    )
    return RepositorySnapshot(
        name=str(payload.get("name", "")),
        full_name=str(payload.get("full_name", "")),
        description=payload.get("description"),
        language=payload.get("language"),
        stars=int(payload.get("stargazers_count") or 0),
        forks=int(payload.get("forks_count") or 0),
        watchers=int(payload.get("watchers_count") or 0),
        default_branch=str(payload.get("default_branch") or "main"),
        size=int(payload.get("size") or 0),
        open_issues=int(payload.get("open_issues_count") or 0),
        license=license_info,
        created_at=payload.get("created_at"),
        updated_at=payload.get("updated_at"),
        html_url=str(payload.get("html_url") or ""),
    )


def _parse_contributor(payload: dict[str, Any]) -> Contributor:
    return Contributor(
        login=str(payload.get("login") or payload.get("name") or "anonymous"),
        contributions=int(payload.get("contributions") or 0),
        avatar_url=str(payload.get("avatar_url") or ""),
        profile_url=str(payload.get("html_url") or ""),
        account_type=str(payload.get("type") or "User"),
    )


def _parse_commit(payload: dict[str, Any]) -> Commit:
    commit = payload.get("commit")
    commit = commit if isinstance(commit, dict) else {}
    author = commit.get("author")
    author = author if isinstance(author, dict) else {}
    user = payload.get("author")
    files = payload.get("files")
    files = files if isinstance(files, list) else []
    return Commit(
        sha=str(payload.get("sha", "")),
        message=str(commit.get("message") or ""),
        author_name=str(author.get("name") or ""),
        author_email=str(author.get("email") or ""),
        authored_at=author.get("date"),
        author_login=user.get("login") if isinstance(user, dict) else None,
        files=[
            str(f["filename"])
            for f in files
            if isinstance(f, dict) and f.get("filename")
        ],
    )


def parse_package_json(text: str) -> DependencyInfo:
    """Read ``dependencies``/``devDependencies`` from a package.json body."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("package_json_unparseable")
        return DependencyInfo()
    if not isinstance(payload, dict):
        return DependencyInfo()
    return DependencyInfo(
        dependencies={
            str(k): str(v) for k, v in (payload.get("dependencies") or {}).items()
        },
        dev_dependencies={
            str(k): str(v) for k, v in (payload.get("devDependencies") or {}).items()
        },
    )


def parse_requirements(text: str) -> dict[str, str]:
    """Read ``name -> specifier`` pairs from a requirements.txt body."""
    result: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        match = _REQUIREMENT_RE.match(line)
        if match:
            result[match.group(1)] = match.group(2).split(";", 1)[0].strip() or "*"
    return result


def _json_or_none(response: httpx.Response, resource: str) -> Any:
    """Decode a successful response body; ``None`` when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        logger.warning(
            "github_payload_unparseable", resource=resource, url=str(response.url)
        )
        return None


async def _gather_all(coros: Iterable[Coroutine[Any, Any, _T]]) -> list[_T]:
    """Run ``coros`` concurrently; on the first error cancel the rest."""
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class GitHubClient:
    """Async client for the GitHub REST v3 API.

    One instance serves one analysis request; it holds no state beyond
    the token and the underlying connection pool.

    Attributes:
        settings: Limits, page size and timeout.
    """

    def __init__(
        self,
        settings: GitHubSettings,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: GitHub section of the application settings.
            token: Optional Personal Access Token; falls back to
                ``settings.token``.
            transport: Optional httpx transport (``httpx.MockTransport`` in
                tests).
            is_cancelled: Callback polled before every request; when it
                returns ``True`` the client raises ``AnalysisCancelledError``.
        """
        self.settings = settings
        fallback = settings.token.get_secret_value() if settings.token else None
        self._token = token or fallback
        self._is_cancelled = is_cancelled or (lambda: False)

        headers = {"Accept": _ACCEPT_HEADER, "X-GitHub-Api-Version": _API_VERSION}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(
            base_url=settings.api_url,
            headers=headers,
            timeout=settings.timeout,
            transport=transport,
            follow_redirects=True,
        )
        logger.debug(
            "github_client_ready",
            api_url=settings.api_url,
            token=redact_secret(self._token),
        )

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # -- transport -----------------------------------------------------------

    async def _get(
        self,
        url: str,
        *,
        resource: str,
        ref: RepositoryRef | None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if self._is_cancelled():
            raise AnalysisCancelledError(
                f"Analysis cancelled before fetching {resource}."
            )

        repository = ref.full_name if ref else ""
        try:
            response = await self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise GitHubAPIError(
                f"GitHub API timed out while fetching {resource} for {repository}.",
                resource=resource,
                repository=repository,
            ) from exc
        except httpx.HTTPError as exc:
            raise GitHubAPIError(
                f"Failed to fetch {resource} for {repository}: {exc}",
                resource=resource,
                repository=repository,
            ) from exc

        if response.is_error:
            raise map_github_error(
                response,
                resource=resource,
                repository=repository,
                has_token=self.has_token,
            )

        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None and remaining.isdigit():
            if int(remaining) < _LOW_RATE_LIMIT_WARNING:
                logger.warning(
                    "github_rate_limit_low", remaining=int(remaining), resource=resource
                )
        return response

    async def paginate(
        self,
        url: str,
        *,
        resource: str,
        ref: RepositoryRef,
        params: dict[str, Any] | None = None,
        limit: int | None = None,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every item of a paginated list resource.

        Follows the ``rel="next"`` link of each response. Stops when no
        next link is present, when a page holds fewer than ``per_page``
        items, when ``limit`` items were collected, or after ``max_pages``
        pages.

        Args:
            url: First-page path or URL.
            resource: Resource name for error messages.
            ref: Repository the resource belongs to.
            params: Query parameters for the first page. ``per_page`` is
                filled in from settings when absent.
            limit: Optional cap on the number of items returned.
            max_pages: Optional cap on the number of pages requested.

        Returns:
            The items of all pages, in the order GitHub returned them.

        Raises:
            GitHubAPIError: If any page request fails.
        """
        query = dict(params or {})
        per_page = int(query.setdefault("per_page", self.settings.per_page))

        items: list[dict[str, Any]] = []
        next_url: str | None = url
        next_params: dict[str, Any] | None = query
        pages = 0

        while next_url is not None:
            response = await self._get(
                next_url, resource=resource, ref=ref, params=next_params
            )
            pages += 1
            page = response.json()
            if not isinstance(page, list):
                raise GitHubAPIError(
                    f"Unexpected response while fetching {resource} for "
                    f"{ref.full_name}: expected a list.",
                    status=response.status_code,
                    resource=resource,
                    repository=ref.full_name,
                )
            items.extend(item for item in page if isinstance(item, dict))

            if limit is not None and len(items) >= limit:
                return items[:limit]
            if len(page) < per_page:
                break
            if max_pages is not None and pages >= max_pages:
                break

            next_url = response.links.get("next", {}).get("url")
            # The continuation URL already carries the query string
            next_params = None

        logger.debug(
            "github_paginated", resource=resource, pages=pages, items=len(items)
        )
        return items

    # -- mandatory resources -------------------------------------------------

    async def get_repository(self, ref: RepositoryRef) -> RepositorySnapshot:
        response = await self._get(
            f"/repos/{ref.owner}/{ref.name}", resource="repository", ref=ref
        )
        return _parse_snapshot(response.json())

    async def list_contributors(self, ref: RepositoryRef) -> list[Contributor]:
        """Fetch contributors, ordered by contribution count descending."""
        raw = await self.paginate(
            f"/repos/{ref.owner}/{ref.name}/contributors",
            resource="contributors",
            ref=ref,
            max_pages=self.settings.max_contributor_pages,
        )
        contributors = [_parse_contributor(item) for item in raw]
        return sorted(contributors, key=lambda c: -c.contributions)

    async def list_commits(
        self,
        ref: RepositoryRef,
        sha: str | None = None,
        limit: int | None = None,
    ) -> list[Commit]:
        """Fetch the most recent commits, newest first.

        Args:
            ref: Repository to read.
            sha: Optional branch name or commit SHA to start listing from.
            limit: Maximum number of commits; defaults to
                ``settings.max_commits``.

        Returns:
            At most ``limit`` commits.

        Raises:
            GitHubAPIError: If any page request fails.
        """
        cap = limit if limit is not None else self.settings.max_commits
        params: dict[str, Any] = {"per_page": min(self.settings.per_page, cap)}
        if sha:
            params["sha"] = sha
        raw = await self.paginate(
            f"/repos/{ref.owner}/{ref.name}/commits",
            resource="commits",
            ref=ref,
            params=params,
            limit=cap,
        )
        return [_parse_commit(item) for item in raw]

    async def get_commit_details(self, ref: RepositoryRef, sha: str) -> Commit:
        """Fetch one commit including the paths it touched.

        Raises:
            GitHubAPIError: If the request fails or the body is not a commit.
        """
        resource = f"commit {sha[:7]}"
        response = await self._get(
            f"/repos/{ref.owner}/{ref.name}/commits/{quote(sha, safe='')}",
            resource=resource,
            ref=ref,
        )
        payload = _json_or_none(response, resource)
        if not isinstance(payload, dict):
            raise GitHubAPIError(
                f"Unexpected response while fetching {resource} for "
                f"{ref.full_name}: expected an object.",
                status=response.status_code,
                resource=resource,
                repository=ref.full_name,
            )
        return _parse_commit(payload)

    async def fetch_commit_details(
        self,
        ref: RepositoryRef,
        commits: list[Commit],
        limit: int | None = None,
    ) -> list[Commit]:
        """Attach changed-file lists to the most recent ``commits``.

        The listing endpoint omits ``files``; this reads the first ``limit``
        commits one by one with bounded concurrency. A failed fetch is
        logged and keeps the listed commit.

        Args:
            ref: Repository the commits belong to.
            commits: Commits newest first, as returned by :meth:`list_commits`.
            limit: How many to detail; defaults to
                ``settings.max_commit_details``.

        Returns:
            ``commits`` in the original order.
        """
        cap = limit if limit is not None else self.settings.max_commit_details
        head = [commit for commit in commits[:cap] if commit.sha]
        if not head:
            return list(commits)

        semaphore = asyncio.Semaphore(self.settings.content_concurrency)

        async def _fetch(commit: Commit) -> Commit:
            async with semaphore:
                try:
                    return await self.get_commit_details(ref, commit.sha)
                except GitHubAPIError as exc:
                    logger.warning(
                        "github_commit_details_failed",
                        sha=commit.sha[:7],
                        error=str(exc),
                    )
                    return commit

        detailed = await _gather_all(_fetch(commit) for commit in head)
        by_sha = {commit.sha: commit for commit in detailed}
        logger.info(
            "github_commit_details_fetched",
            repository=str(ref),
            requested=len(head),
            with_files=sum(1 for c in detailed if c.files),
        )
        return [by_sha.get(commit.sha, commit) for commit in commits]

    # -- secondary resources -------------------------------------------------

    async def get_languages(self, ref: RepositoryRef) -> dict[str, int]:
        """Fetch language byte counts; empty on failure."""
        try:
            response = await self._get(
                f"/repos/{ref.owner}/{ref.name}/languages",
                resource="languages",
                ref=ref,
            )
        except GitHubAPIError as exc:
            logger.warning(
                "github_languages_failed", repository=str(ref), error=str(exc)
            )
            return {}
        payload = _json_or_none(response, "languages")
        if not isinstance(payload, dict):
            return {}
        return {
            str(k): int(v)
            for k, v in payload.items()
            if isinstance(v, int) or (isinstance(v, str) and v.isdigit())
        }

    async def get_tree(self, ref: RepositoryRef, branch: str) -> list[FileRecord]:
        """List every blob of a branch through the recursive git tree API."""
        try:
            response = await self._get(
                f"/repos/{ref.owner}/{ref.name}/git/trees/{quote(branch, safe='')}",
                resource="file tree",
                ref=ref,
                params={"recursive": "1"},
            )
        except GitHubAPIError as exc:
            logger.warning("github_tree_failed", repository=str(ref), error=str(exc))
            return []

        payload = _json_or_none(response, "file tree")
        if not isinstance(payload, dict):
            return []
        if payload.get("truncated"):
            logger.warning("github_tree_truncated", repository=str(ref))
        return [
            FileRecord(path=str(item["path"]), size=int(item.get("size") or 0))
            for item in payload.get("tree") or []
            if isinstance(item, dict)
            and item.get("type") == "blob"
            and item.get("path")
        ]

    async def list_directory(
        self, ref: RepositoryRef, path: str = ""
    ) -> list[FileRecord]:
        """List the files of one directory through the contents API."""
        try:
            response = await self._get(
                f"/repos/{ref.owner}/{ref.name}/contents/{quote(path)}",
                resource=f"directory {path or '/'}",
                ref=ref,
            )
        except GitHubAPIError as exc:
            logger.warning(
                "github_directory_failed",
                repository=str(ref),
                path=path,
                error=str(exc),
            )
            return []

        payload = _json_or_none(response, f"directory {path or '/'}")
        if not isinstance(payload, list):
            return []
        return [
            FileRecord(path=str(item["path"]), size=int(item.get("size") or 0))
            for item in payload
            if isinstance(item, dict)
            and item.get("type") == "file"
            and item.get("path")
        ]

    async def get_file_content(self, ref: RepositoryRef, path: str) -> str:
        """Fetch and base64-decode one file.

        Binary extensions short-circuit to an empty string without a request.

        Raises:
            GitHubAPIError: If the request fails.
        """
        if _extension(path) in _BINARY_EXTENSIONS:
            return ""
        response = await self._get(
            f"/repos/{ref.owner}/{ref.name}/contents/{quote(path)}",
            resource=f"file {path}",
            ref=ref,
        )
        payload = _json_or_none(response, f"file {path}")
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, str):
            return ""
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            logger.warning("github_content_undecodable", repository=str(ref), path=path)
            return ""

    def select_content_subset(self, files: Iterable[FileRecord]) -> list[FileRecord]:
        """Pick the bounded, prioritized subset of files worth reading.

        Code files come first, then config, then docs; within a category
        the tree order is kept. Files at or above ``max_file_size`` and empty
        files are skipped.
        """
        ranked: list[tuple[int, int, FileRecord]] = []
        for index, record in enumerate(files):
            priority = _content_priority(record.path)
            if priority is None:
                continue
            if record.size <= 0 or record.size >= self.settings.max_file_size:
                continue
            ranked.append((priority, index, record))
        ranked.sort(key=lambda entry: (entry[0], entry[1]))
        return [record for _, _, record in ranked[: self.settings.max_content_files]]

    async def fetch_contents(
        self, ref: RepositoryRef, files: list[FileRecord]
    ) -> list[FileRecord]:
        """Attach content to the prioritized subset of ``files``.

        Fetches run with bounded concurrency. A failed fetch is logged and
        leaves that file without content.

        Returns:
            ``files`` in the original order, with fetched entries replaced
            by copies carrying their content.
        """
        subset = self.select_content_subset(files)
        if not subset:
            return list(files)

        semaphore = asyncio.Semaphore(self.settings.content_concurrency)

        async def _fetch(record: FileRecord) -> FileRecord:
            async with semaphore:
                try:
                    content = await self.get_file_content(ref, record.path)
                except GitHubAPIError as exc:
                    logger.warning(
                        "github_file_fetch_failed", path=record.path, error=str(exc)
                    )
                    return record
            return record.with_content(content)

        fetched = await _gather_all(_fetch(record) for record in subset)
        by_path = {record.path: record for record in fetched}
        logger.info(
            "github_contents_fetched",
            repository=str(ref),
            requested=len(subset),
            with_content=sum(1 for r in fetched if r.content),
        )
        return [by_path.get(record.path, record) for record in files]

    async def get_dependencies(
        self, ref: RepositoryRef, available_paths: set[str] | None = None
    ) -> DependencyInfo:
        """Read declared dependencies from root manifests; empty on failure."""
        info = DependencyInfo()
        if available_paths is None or "package.json" in available_paths:
            try:
                text = await self.get_file_content(ref, "package.json")
            except GitHubAPIError as exc:
                logger.debug("package_json_unavailable", error=str(exc))
            else:
                info = parse_package_json(text)

        if available_paths is None or "requirements.txt" in available_paths:
            try:
                text = await self.get_file_content(ref, "requirements.txt")
            except GitHubAPIError as exc:
                logger.debug("requirements_unavailable", error=str(exc))
            else:
                merged = {**info.dependencies, **parse_requirements(text)}
                info = info.model_copy(update={"dependencies": merged})
        return info

    async def verify_token(self) -> bool:
        """Return whether the configured token is accepted by ``GET /user``."""
        if not self._token:
            return False
        try:
            await self._get("/user", resource="authenticated user", ref=None)
        except (GitHubAuthError, GitHubPermissionError) as exc:
            logger.info(
                "github_token_rejected",
                status=exc.status,
                token=redact_secret(self._token),
            )
            return False
        return True
