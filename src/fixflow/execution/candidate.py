"""Parse raw model responses into Candidates.

Generator implementations that receive free text from a model can use
``parse_candidate`` to turn it into file changes. Two layouts are
recognised:

    ```filename: src/app.js
    ...code...
    ```

and a plain fenced block followed by a ``File path:`` (or ``Path:``) line.
"""

from __future__ import annotations

import re

from fixflow.core.models import Candidate, FileChange

_FILENAME_BLOCK_RE = re.compile(r"```filename:\s*([^\n]+)\n((?:(?!```).)+?)```", re.DOTALL)
_TRAILING_PATH_BLOCK_RE = re.compile(
    r"```([A-Za-z0-9_+-]+)?[ \t]*\n((?:(?!```).)+?)```\s*(?:File path:|Path:)\s*([^\n]+)",
    re.DOTALL,
)
_ANY_BLOCK_RE = re.compile(r"```.+?```", re.DOTALL)
_EXPLANATION_RE = re.compile(
    r"(?:explanation|thought process|reasoning|analysis):\s*(.+?)(?=\n\n|$)",
    re.IGNORECASE | re.DOTALL,
)


def extract_changes(text: str) -> list[FileChange]:
    """Extract file changes from a response, first occurrence of a path wins."""
    changes: list[FileChange] = []
    seen: set[str] = set()

    for match in _FILENAME_BLOCK_RE.finditer(text):
        path = match.group(1).strip()
        if path in seen:
            continue
        seen.add(path)
        changes.append(FileChange(path=path, content=match.group(2).strip()))

    for match in _TRAILING_PATH_BLOCK_RE.finditer(_FILENAME_BLOCK_RE.sub("", text)):
        path = match.group(3).strip()
        if path in seen:
            continue
        seen.add(path)
        changes.append(
            FileChange(
                path=path,
                content=match.group(2).strip(),
                language=match.group(1) or "",
            )
        )

    return changes


def extract_explanation(text: str) -> str:
    """Return the labelled explanation section, or all prose outside code blocks."""
    prose = _ANY_BLOCK_RE.sub("", text)
    match = _EXPLANATION_RE.search(prose)
    if match:
        return match.group(1).strip()
    return prose.strip()


def parse_candidate(text: str) -> Candidate:
    return Candidate(
        changes=tuple(extract_changes(text)),
        explanation=extract_explanation(text),
    )


__all__ = ["extract_changes", "extract_explanation", "parse_candidate"]
