"""Built-in structural validator for candidate fixes.

Checks are purely local and synchronous: no file system access, no
compilation. Each failed check adds one human-readable issue; a
candidate is valid when no issues are found.
"""

from __future__ import annotations

from fixflow.core.config import ValidatorConfig
from fixflow.core.models import Candidate, FileChange, ValidationReport

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def check_brackets(content: str) -> str | None:
    """Return a description of the first bracket imbalance, or None.

    Purely structural: brackets inside strings and comments are counted
    like any other.
    """
    stack: list[str] = []
    for char in content:
        if char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS:
            if not stack or _OPENERS[stack.pop()] != char:
                return f"mismatched '{char}'"
    if stack:
        return f"unclosed '{stack[-1]}'"
    return None


class CandidateValidator:
    """Validates candidates against a ValidatorConfig.

    Instances are callable so they satisfy the ``Validator`` protocol:

        validator = CandidateValidator()
        report = validator(candidate)
    """

    def __init__(self, config: ValidatorConfig | None = None) -> None:
        self.config = config or ValidatorConfig()

    def __call__(self, candidate: Candidate) -> ValidationReport:
        return self.validate(candidate)

    def validate(self, candidate: Candidate) -> ValidationReport:
        if not candidate.changes:
            return ValidationReport.from_issues(["Candidate contains no file changes"])

        issues: list[str] = []
        for change in candidate.changes:
            issues.extend(self._check_change(change))
        return ValidationReport.from_issues(issues)

    def _check_change(self, change: FileChange) -> list[str]:
        path = change.path.strip()
        if not path:
            return ["File path not specified"]
        if not change.content.strip():
            return [f"File content is empty: {path}"]

        issues: list[str] = []
        ext = _extension(path)

        for prefix in self.config.blocked_paths:
            if path.startswith(prefix) or f"/{prefix}" in path:
                issues.append(f"File path is blocked for modification: {path}")
                break

        allowed = self.config.allowed_extensions
        if allowed is not None and ext not in allowed:
            issues.append(f"File type not allowed for modification: {path}")

        if ext in self.config.bracket_checked_extensions:
            problem = check_brackets(change.content)
            if problem:
                issues.append(f"Syntax error in {path}: {problem}")

        return issues


__all__ = ["CandidateValidator", "check_brackets"]
