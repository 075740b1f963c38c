"""Shared dataclasses for laborer pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import LaborerPipelineError


class StageKind(str, Enum):
    STYLE = "style"
    CLIENT_TYPESCRIPT = "client-typescript"
    SERVER_TYPESCRIPT = "server-typescript"
    UTILS_TEST = "utils-test"
    MODELS_TEST = "models-test"
    CLIENT_TEST = "client-test"
    SERVER_TEST = "server-test"
    CLIENT_BUNDLE = "client-bundle"
    CLIENT_BUNDLE_WATCH = "client-bundle-watch"
    CLEAN = "clean"

    @property
    def diagnostics_class(self) -> Optional[str]:
        """Name of the diagnostic file this kind owns, or None if it writes none."""
        return _DIAGNOSTIC_CLASSES.get(self)


_DIAGNOSTIC_CLASSES: Dict[StageKind, str] = {
    StageKind.STYLE: "style",
    StageKind.CLIENT_TYPESCRIPT: "client-typescript",
    StageKind.SERVER_TYPESCRIPT: "server-typescript",
    StageKind.CLIENT_BUNDLE: "bundle",
    StageKind.CLIENT_BUNDLE_WATCH: "bundle",
}


@dataclass(frozen=True, slots=True)
class DiagnosticRecord:
    text: str
    stage: StageKind
    source_path: Optional[str] = None
    line: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("diagnostic text must be non-empty")


@dataclass(slots=True)
class DiagnosticBatch:
    """Records collected during exactly one stage invocation, in report order."""

    stage: StageKind
    _records: List[DiagnosticRecord] = field(default_factory=list)
    flushed: bool = False

    def append(self, record: DiagnosticRecord) -> None:
        if self.flushed:
            raise LaborerPipelineError("diagnostic batch already flushed", stage=self.stage.value)
        self._records.append(record)

    @property
    def records(self) -> Tuple[DiagnosticRecord, ...]:
        return tuple(self._records)

    def texts(self) -> List[str]:
        return [record.text for record in self._records]

    def __iter__(self) -> Iterator[DiagnosticRecord]:
        return iter(tuple(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)


@dataclass(frozen=True, slots=True)
class StageOptions:
    """Per-invocation configuration surface shared by every stage factory."""

    declaration: bool = False
    rules: Optional[Mapping[str, Any]] = None
    show_stats: Optional[bool] = None
    style_name: str = "main.css"


@dataclass(frozen=True, slots=True)
class StageDescriptor:
    kind: StageKind
    input_selectors: Tuple[str, ...]
    declaration_output: bool = False


@dataclass(slots=True)
class StageResult:
    kind: StageKind
    diagnostics: DiagnosticBatch
    ok: bool = True
    fatal: bool = False
    skipped: bool = False
    outputs: List[Path] = field(default_factory=list)
    duration_seconds: Optional[float] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal else 0


EntryMapping = Dict[str, Path]


__all__ = [
    "StageKind",
    "DiagnosticRecord",
    "DiagnosticBatch",
    "StageOptions",
    "StageDescriptor",
    "StageResult",
    "EntryMapping",
]
