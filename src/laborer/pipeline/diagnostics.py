"""Diagnostic sink: collect tool-reported problems and persist them for the IDE."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.markup import escape

from .errors import LaborerPipelineError
from .models import DiagnosticBatch, DiagnosticRecord, StageKind
from .run_mode import RunConfig

logger = logging.getLogger(__name__)

console = Console(stderr=True)

# path(line,col): ...            tsc
_PAREN_LOCATION = re.compile(r"^(?P<path>[^\s(][^(]*?)\((?P<line>\d+),\d+\)")
# path:line[:col] ...            sass, scss-lint, tslint, webpack
_COLON_LOCATION = re.compile(r"^(?P<path>(?:[A-Za-z]:)?[^:\s]+):(?P<line>\d+)(?::\d+)?\b")


def extract_location(text: str) -> Tuple[Optional[str], Optional[int]]:
    """Best-effort (path, line) from the first line of a reporter message."""
    first = text.lstrip().splitlines()[0] if text.strip() else ""
    for pattern in (_PAREN_LOCATION, _COLON_LOCATION):
        match = pattern.match(first)
        if match:
            return match.group("path").strip(), int(match.group("line"))
    return None, None


def new_batch(stage: StageKind) -> DiagnosticBatch:
    return DiagnosticBatch(stage=stage)


def record(
    batch: DiagnosticBatch,
    text: str,
    *,
    source_path: Optional[str] = None,
    line: Optional[int] = None,
) -> Optional[DiagnosticRecord]:
    """Append one diagnostic; blank text is dropped and returns None.

    Multi-line payloads are folded onto one line so the file stays one record per line.
    """
    text = " ".join(part.strip() for part in text.splitlines() if part.strip())
    if not text:
        return None
    if source_path is None and line is None:
        source_path, line = extract_location(text)
    entry = DiagnosticRecord(text=text, stage=batch.stage, source_path=source_path, line=line)
    batch.append(entry)
    logger.debug("[%s] %s", batch.stage.value, text)
    return entry


def flush(batch: DiagnosticBatch, destination: Path, config: RunConfig) -> bool:
    """Overwrite ``destination`` with the batch, one record per line.

    An empty batch still writes an empty file so a previous failing run's
    output does not linger. Returns True when fail-on-error escalates the batch.
    """
    if batch.flushed:
        raise LaborerPipelineError("diagnostic batch already flushed", stage=batch.stage.value)

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text("\n".join(batch.texts()), encoding="utf-8")
    batch.flushed = True
    logger.debug("Wrote %s diagnostic(s) to %s", len(batch), destination)

    if not batch:
        return False
    logger.warning("%s reported %s problem(s); see %s", batch.stage.value, len(batch), destination)
    return config.fail_on_error


def print_batch(batch: DiagnosticBatch, out: Console | None = None) -> None:
    target = out or console
    target.print(f"[bold red]{batch.stage.value}: {len(batch)} problem(s)[/bold red]")
    for entry in batch:
        target.print(f"  {escape(entry.text)}")


__all__ = ["extract_location", "new_batch", "record", "flush", "print_batch", "console"]
