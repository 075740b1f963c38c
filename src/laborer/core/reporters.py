"""Turn each tool's own error payload into diagnostic lines.

Every function returns plain strings in the ``path:line:col ...`` or
``path(line,col): ...`` shapes the IDE error parser understands. The optional
``fix_path`` hook lets a stage rewrite staged paths before anything is recorded.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

PathFixer = Callable[[str], str]

FATAL_BUNDLE_PREFIX = "Fatal webpack error: "

_TSC_HEADER = re.compile(r"^(?:.+\(\d+,\d+\): )?(?:error|warning|message) TS\d+:")
_SASS_LOCATION = re.compile(r"^\s*(?P<path>\S+) (?P<line>\d+):(?P<column>\d+)\s")


def _identity(text: str) -> str:
    return text


def _load_json(payload: str) -> Any:
    payload = payload.strip()
    if not payload:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Reporter payload was not JSON: %.200s", payload)
        return None


def scss_lint_messages(payload: str, fix_path: Optional[PathFixer] = None) -> Optional[List[str]]:
    """scss-lint ``--format JSON`` report; None if the payload is not a report."""
    fix = fix_path or _identity
    report = _load_json(payload)
    if not isinstance(report, Mapping):
        return None

    messages: List[str] = []
    for file_name, lints in report.items():
        for lint in lints or []:
            messages.append(
                fix(
                    f"{file_name}:{lint.get('line', 0)}:{lint.get('column', 0)} "
                    f"[{lint.get('severity', 'warning')}] {lint.get('linter', 'scss-lint')}: "
                    f"{lint.get('reason', '').strip()}"
                )
            )
    return messages


def sass_messages(stderr: str, source: Path, fix_path: Optional[PathFixer] = None) -> List[str]:
    """Compiler errors from ``sass``; falls back to the compiled file when no location is given."""
    fix = fix_path or _identity
    lines = [line for line in stderr.splitlines() if line.strip()]
    if not lines:
        return [fix(f"{source}: error: sass exited without a message")]

    message = lines[0].strip()
    if message.startswith("Error: "):
        message = message[len("Error: "):]

    for line in lines[1:]:
        location = _SASS_LOCATION.match(line)
        if location:
            return [
                fix(
                    f"{location.group('path')}:{location.group('line')}:{location.group('column')} "
                    f"error: {message}"
                )
            ]
    return [fix(f"{source}: error: {message}")]


def tslint_messages(payload: str, fix_path: Optional[PathFixer] = None) -> Optional[List[str]]:
    """tslint ``--format json`` failures (zero-based positions made one-based)."""
    fix = fix_path or _identity
    failures = _load_json(payload)
    if not isinstance(failures, list):
        return None

    messages: List[str] = []
    for failure in failures:
        start = failure.get("startPosition") or {}
        messages.append(
            fix(
                f"{failure.get('name', '<unknown>')}:{int(start.get('line', 0)) + 1}:"
                f"{int(start.get('character', 0)) + 1} tslint({failure.get('ruleName', '?')}): "
                f"{failure.get('failure', '').strip()}"
            )
        )
    return messages


def tsc_messages(output: str, fix_path: Optional[PathFixer] = None) -> List[str]:
    """``tsc --pretty false`` output, one message per diagnostic with continuation lines joined."""
    fix = fix_path or _identity
    messages: List[str] = []
    current: List[str] = []

    for line in output.splitlines():
        if not line.strip():
            continue
        if _TSC_HEADER.match(line) or not current:
            if current:
                messages.append(fix(" ".join(current)))
            current = [line.strip()]
        else:
            current.append(line.strip())

    if current:
        messages.append(fix(" ".join(current)))
    return messages


def _bundle_problem(problem: Any, kind: str) -> str:
    if isinstance(problem, str):
        return problem.strip()

    message = str(problem.get("message", "")).strip()
    module = problem.get("moduleName") or problem.get("moduleIdentifier")
    if not module:
        return f"{kind}: {message}"
    loc = problem.get("loc")
    location = f"{module}:{loc}" if loc else module
    return f"{location} {kind}: {message}"


def webpack_messages(stats: Mapping[str, Any], fix_path: Optional[PathFixer] = None) -> List[str]:
    """Errors then warnings from a webpack stats JSON object."""
    fix = fix_path or _identity
    messages: List[str] = []
    for kind, key in (("error", "errors"), ("warning", "warnings")):
        problems: Iterable[Any] = stats.get(key) or []
        for problem in problems:
            text = _bundle_problem(problem, kind)
            if text:
                messages.append(fix(text))
    return messages


def fatal_bundle_message(detail: str) -> str:
    detail = " ".join(line.strip() for line in detail.splitlines() if line.strip())
    detail = detail or "bundler exited without reporting a result"
    return FATAL_BUNDLE_PREFIX + detail


__all__ = [
    "FATAL_BUNDLE_PREFIX",
    "PathFixer",
    "scss_lint_messages",
    "sass_messages",
    "tslint_messages",
    "tsc_messages",
    "webpack_messages",
    "fatal_bundle_message",
]
