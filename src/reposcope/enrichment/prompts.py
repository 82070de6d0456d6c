"""Prompt templates and output budgets for repository enrichment.

Each builder returns ``(prompt, max_output_tokens)`` so the orchestrator
never has to know how long a given answer is allowed to be.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from reposcope.models import (
        FileRecord,
        Hotspot,
        RepositorySnapshot,
        TechnicalDebtItem,
    )

SUMMARY_MAX_TOKENS = 500
ARCHITECTURE_MAX_TOKENS = 800
SECURITY_MAX_TOKENS = 400
FUNCTION_MAX_TOKENS = 500
HOTSPOT_MAX_TOKENS = 300
COMPLEXITY_MAX_TOKENS = 300
ROADMAP_MAX_TOKENS = 800
AVAILABILITY_MAX_TOKENS = 5

_ARCHITECTURE_FILE_LIMIT = 100
_SECURITY_FILE_LIMIT = 15
_COMPLEXITY_CONTENT_LIMIT = 2000
_FUNCTION_CONTEXT_LIMIT = 1000
_HOTSPOT_CONTENT_LIMIT = 1500
_ROADMAP_DEBT_LIMIT = 10
_ROADMAP_HOTSPOT_LIMIT = 5

_SECURITY_RELEVANT_RE = re.compile(
    r"config|util|service|auth"
    r"|\.(?:env|pem|key|secret|token|conf|cfg|xml|json|ya?ml)$"
    r"|(?:^|/)(?:config|settings|secret|credential|auth|token)[^/]*$",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Free-text prompts
# ---------------------------------------------------------------------------


def summary_prompt(
    snapshot: RepositorySnapshot, contributor_count: int, commit_count: int
) -> tuple[str, int]:
    """Executive summary of a repository from its metadata."""
    prompt = (
        f"Write an executive summary of the GitHub repository "
        f'"{snapshot.full_name}".\n'
        f"Description: {snapshot.description or 'none'}\n"
        f"Primary language: {snapshot.language or 'unknown'}\n"
        f"Stars: {snapshot.stars}, forks: {snapshot.forks}, "
        f"open issues: {snapshot.open_issues}\n"
        f"Contributors sampled: {contributor_count}, "
        f"recent commits sampled: {commit_count}\n\n"
        "In 150-200 words cover what the project does, who it is for, how "
        "actively it is maintained, and the most important risk a new "
        "maintainer should know about. Return only the summary text."
    )
    return prompt, SUMMARY_MAX_TOKENS


def architecture_prompt(
    files: Sequence[FileRecord], languages: Mapping[str, int]
) -> tuple[str, int]:
    """Architecture review from the file listing and language byte counts."""
    listing = "\n".join(
        f"- {record.path} ({record.size} bytes)"
        for record in files[:_ARCHITECTURE_FILE_LIMIT]
    )
    language_summary = ", ".join(
        f"{name}: {size} bytes" for name, size in languages.items()
    )
    prompt = (
        "Analyze the architecture of this codebase.\n"
        f"Languages used: {language_summary or 'unknown'}\n"
        f"Key files and directories:\n{listing or '- (empty)'}\n\n"
        "Describe the probable architectural pattern with evidence, the key "
        "modules and how they interact, data flow and state management, "
        "code organization, scalability and maintainability concerns, and "
        "concrete improvements. Write plain prose without markdown, "
        "400-500 words. Return only the analysis text."
    )
    return prompt, ARCHITECTURE_MAX_TOKENS


def security_prompt(
    full_name: str, files: Sequence[FileRecord]
) -> tuple[str, int]:
    """High-level security review driven by security-relevant file paths."""
    relevant = [
        record.path
        for record in files
        if _SECURITY_RELEVANT_RE.search(record.path)
    ][:_SECURITY_FILE_LIMIT]
    listing = "\n".join(relevant) or (
        "No specific security-relevant files identified in the sample."
    )
    prompt = (
        f'Conduct a high-level security review of the repository "{full_name}" '
        "based on its file structure.\n"
        f"Potentially security-relevant files:\n{listing}\n\n"
        "In 150-200 words highlight areas of concern suggested by the paths, "
        "the general security posture, configuration and secrets "
        "management, and recommended improvements. Return only the "
        "analysis text."
    )
    return prompt, SECURITY_MAX_TOKENS


def function_prompt(
    name: str,
    body: str,
    file_path: str,
    language: str | None = None,
    context: str | None = None,
) -> tuple[str, int]:
    """Technical explanation of one function."""
    fence = language or ""
    context_block = ""
    if context:
        context_block = (
            "Context from the file:\n"
            f"```\n{context[:_FUNCTION_CONTEXT_LIMIT]}\n```\n"
        )
    prompt = (
        f'Explain the {language or "code"} function "{name}" from the file '
        f'"{file_path}".\n'
        f"{context_block}"
        f"Function code:\n```{fence}\n{body}\n```\n\n"
        "Cover its purpose, parameters, return value, core logic, its role "
        "in the codebase, and any edge cases or improvement opportunities. "
        "Keep it technical, 200-250 words. Return only the explanation text."
    )
    return prompt, FUNCTION_MAX_TOKENS


def hotspot_prompt(hotspot: Hotspot, content: str | None = None) -> tuple[str, int]:
    """Why one file is risky to change and what would lower that risk."""
    excerpt = ""
    if content:
        excerpt = f"```\n{content[:_HOTSPOT_CONTENT_LIMIT]}\n```\n"
    prompt = (
        f'The file "{hotspot.path}" was flagged as a {hotspot.risk_level} risk '
        f"hotspot: complexity score {hotspot.complexity}, {hotspot.size} lines, "
        f"changed in {hotspot.changes} recent commits.\n"
        f"{excerpt}\n"
        "In 2-3 sentences, explain what makes this file risky to modify and "
        "the single change that would reduce that risk most. "
        "Return only the explanation text."
    )
    return prompt, HOTSPOT_MAX_TOKENS


# ---------------------------------------------------------------------------
# Structured prompts
# ---------------------------------------------------------------------------


def complexity_prompt(content: str, file_path: str) -> tuple[str, int]:
    """Big-O estimate for a file's dominant logic, answered as JSON."""
    prompt = (
        "Analyze the algorithmic complexity of the core logic in this code "
        f'from "{file_path}".\n'
        f"```\n{content[:_COMPLEXITY_CONTENT_LIMIT]}\n```\n\n"
        'Respond with a JSON object: {"complexity": Big O notation such as '
        '"O(n log n)", "runtime": a short runtime characterization, '
        '"recommendation": an optional suggestion}. '
        "Focus on the most significant complexity. Return ONLY the JSON object."
    )
    return prompt, COMPLEXITY_MAX_TOKENS


def roadmap_prompt(
    technical_debt: Sequence[TechnicalDebtItem],
    hotspots: Sequence[Hotspot],
    file_count: int,
) -> tuple[str, int]:
    """Prioritized refactoring plan, answered as a JSON array."""
    debt_text = "\n".join(
        f"- {item.file}: {item.description} (severity: {item.severity}, "
        f"effort: {item.effort or 'unknown'})"
        for item in technical_debt[:_ROADMAP_DEBT_LIMIT]
    )
    hotspot_text = "\n".join(
        f"- {spot.path}: risk {spot.risk_level}, complexity {spot.complexity}, "
        f"changes {spot.changes}"
        for spot in hotspots[:_ROADMAP_HOTSPOT_LIMIT]
    )
    prompt = (
        "Generate a prioritized refactoring roadmap of 3-5 items.\n"
        f"Total files in project: {file_count}\n"
        f"Technical debt (up to {_ROADMAP_DEBT_LIMIT}):\n{debt_text or 'N/A'}\n"
        f"Hotspots (up to {_ROADMAP_HOTSPOT_LIMIT}):\n{hotspot_text or 'N/A'}\n\n"
        'Each item is a JSON object: {"priority": 1-5 with 1 highest, '
        '"title": string, "description": what and why, '
        '"effort": "Small", "Medium" or "Large", '
        '"impact": "Low", "Medium" or "High", "files": [paths]}. '
        "Prefer high-severity debt and critical hotspots. "
        "Return ONLY a JSON array of roadmap items."
    )
    return prompt, ROADMAP_MAX_TOKENS


AVAILABILITY_PROMPT = "hello"
