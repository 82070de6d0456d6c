"""Secret and unsafe-construct scanning.

The pattern table is literal and ordered. A line can match more than one
pattern and yield more than one issue; false positives such as example
values in documentation are tolerated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reposcope.models import SecurityIssue, SecurityIssueType, Severity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reposcope.models import FileRecord

_SNIPPET_CONTEXT = 2
_SNIPPET_LINE_LIMIT = 200


@dataclass(frozen=True, slots=True)
class _Rule:
    pattern: re.Pattern[str]
    issue_type: SecurityIssueType
    severity: Severity
    description: str
    recommendation: str
    cwe: str


_SECRET_ADVICE = (
    "Move the value to an environment variable or secret manager and rotate it."
)

SECRET_RULES: tuple[_Rule, ...] = (
    _Rule(
        re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
        SecurityIssueType.SECRET,
        Severity.CRITICAL,
        "AWS access key ID committed to source",
        _SECRET_ADVICE,
        "CWE-798",
    ),
    _Rule(
        re.compile(
            r"aws_?secret_?access_?key\s*[:=]\s*['\"][A-Za-z0-9/+=]{40}['\"]",
            re.IGNORECASE,
        ),
        SecurityIssueType.SECRET,
        Severity.CRITICAL,
        "AWS secret access key committed to source",
        _SECRET_ADVICE,
        "CWE-798",
    ),
    _Rule(
        re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY"),
        SecurityIssueType.SECRET,
        Severity.CRITICAL,
        "Private key block committed to source",
        "Remove the key from the repository history and issue a new key pair.",
        "CWE-321",
    ),
    _Rule(
        re.compile(r"private_?key\s*[:=]\s*['\"][^'\"]{8,}['\"]", re.IGNORECASE),
        SecurityIssueType.SECRET,
        Severity.CRITICAL,
        "Hardcoded private key value",
        _SECRET_ADVICE,
        "CWE-321",
    ),
    _Rule(
        re.compile(
            r"(?<![A-Za-z0-9])(?:password|passwd|pwd)\s*[:=]\s*['\"][^'\"]{4,}['\"]",
            re.IGNORECASE,
        ),
        SecurityIssueType.SECRET,
        Severity.CRITICAL,
        "Hardcoded password",
        _SECRET_ADVICE,
        "CWE-798",
    ),
    _Rule(
        re.compile(
            r"api[_-]?key\s*[:=]\s*['\"][A-Za-z0-9_\-]{16,}['\"]",
            re.IGNORECASE,
        ),
        SecurityIssueType.SECRET,
        Severity.HIGH,
        "Hardcoded API key",
        _SECRET_ADVICE,
        "CWE-798",
    ),
    _Rule(
        re.compile(
            r"(?<![A-Za-z0-9])(?:secret|token|auth_?token|access_?token)\s*[:=]\s*"
            r"['\"][A-Za-z0-9_\-.]{16,}['\"]",
            re.IGNORECASE,
        ),
        SecurityIssueType.SECRET,
        Severity.HIGH,
        "Hardcoded token or secret",
        _SECRET_ADVICE,
        "CWE-798",
    ),
    _Rule(
        re.compile(
            r"\b(?:postgres(?:ql)?|mysql|mongodb(?:\+srv)?|redis)://[^:\s/]+:[^@\s]+@"
        ),
        SecurityIssueType.SECRET,
        Severity.HIGH,
        "Database connection string with embedded credentials",
        "Read the connection string from configuration, not source.",
        "CWE-798",
    ),
)

STRUCTURAL_RULES: tuple[_Rule, ...] = (
    _Rule(
        re.compile(r"(?<![\w.])eval\s*\(|\bnew\s+Function\s*\("),
        SecurityIssueType.VULNERABILITY,
        Severity.HIGH,
        "Dynamic code evaluation",
        "Avoid eval-style constructs; parse data explicitly instead.",
        "CWE-95",
    ),
    _Rule(
        re.compile(
            r"\.innerHTML\s*=(?!=)|dangerouslySetInnerHTML|document\.write\s*\("
        ),
        SecurityIssueType.VULNERABILITY,
        Severity.MEDIUM,
        "Unsanitized HTML injection sink",
        "Sanitize the value or use text-only DOM APIs.",
        "CWE-79",
    ),
)


def _snippet(lines: list[str], index: int) -> str:
    start = max(0, index - _SNIPPET_CONTEXT)
    stop = min(len(lines), index + _SNIPPET_CONTEXT + 1)
    return "\n".join(line[:_SNIPPET_LINE_LIMIT] for line in lines[start:stop])


def scan_security_issues(files: Iterable[FileRecord]) -> list[SecurityIssue]:
    """Match every line of every file against the secret and structural rules.

    Args:
        files: Files in report order; files without content are skipped.

    Returns:
        Issues ordered by file, then line, then rule order.
    """
    issues: list[SecurityIssue] = []
    for record in files:
        if not record.content:
            continue
        lines = record.content.splitlines()
        for index, line in enumerate(lines):
            for rule in (*SECRET_RULES, *STRUCTURAL_RULES):
                if not rule.pattern.search(line):
                    continue
                issues.append(
                    SecurityIssue(
                        type=rule.issue_type,
                        severity=rule.severity,
                        file=record.path,
                        line=index + 1,
                        description=rule.description,
                        recommendation=rule.recommendation,
                        cwe=rule.cwe,
                        code_snippet=_snippet(lines, index),
                    )
                )
    return issues
