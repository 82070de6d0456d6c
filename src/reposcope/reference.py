"""Repository reference parsing."""

from __future__ import annotations

import re

from pydantic import ValidationError

from reposcope.exceptions import InvalidRepositoryReferenceError
from reposcope.models import RepositoryRef

_GITHUB_URL_RE = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s?#]+)", re.IGNORECASE)
_SHORT_REF_RE = re.compile(r"^([A-Za-z0-9][A-Za-z0-9-]*)/([A-Za-z0-9._-]+)$")
_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def parse_repository_ref(raw: str) -> RepositoryRef:
    """Parse a GitHub URL or ``owner/name`` shorthand.

    Accepts ``https://github.com/acme/widgets``, ``github.com/acme/widgets.git``,
    ``git@github.com:acme/widgets.git`` and ``acme/widgets``. Trailing
    path segments (``/tree/main``) are ignored.

    Args:
        raw: The user-supplied reference.

    Returns:
        The parsed, immutable reference.

    Raises:
        InvalidRepositoryReferenceError: If no owner and name can be extracted.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidRepositoryReferenceError("Repository URL is required.")

    match = _GITHUB_URL_RE.search(text) or _SHORT_REF_RE.match(text)
    if match is None:
        raise InvalidRepositoryReferenceError(
            f"Invalid GitHub repository URL: {raw!r}. "
            "Expected https://github.com/<owner>/<name> or <owner>/<name>."
        )

    owner, name = match.group(1), match.group(2)
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name or not _NAME_RE.match(name) or name in {".", ".."}:
        raise InvalidRepositoryReferenceError(
            f"Invalid repository name in {raw!r}."
        )

    try:
        return RepositoryRef(owner=owner, name=name)
    except ValidationError as exc:
        raise InvalidRepositoryReferenceError(
            f"Invalid GitHub repository URL: {raw!r}."
        ) from exc
