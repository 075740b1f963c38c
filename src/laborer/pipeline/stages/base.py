"""
Base interface for build stages.

A stage is one named unit of build work. Every call to :meth:`Stage.run`
starts a fresh diagnostic batch and, for stages that report diagnostics,
flushes it exactly once when the run ends, whether it ended normally or by
an exception.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

from laborer.config import Settings
from laborer.core.tools import ToolRunner
from laborer.pipeline.diagnostics import flush, new_batch
from laborer.pipeline.models import (
    DiagnosticBatch,
    StageDescriptor,
    StageKind,
    StageOptions,
    StageResult,
)
from laborer.pipeline.run_mode import RunConfig

logger = logging.getLogger(__name__)


class Stage(ABC):
    kind: StageKind

    def __init__(
        self,
        settings: Settings,
        options: Optional[StageOptions] = None,
        runner: Optional[ToolRunner] = None,
    ):
        self.settings = settings
        self.options = options or StageOptions()
        self.runner = runner or ToolRunner(settings.node_bin)

    @property
    def display_name(self) -> str:
        return self.kind.value.replace("-", " ").title()

    @property
    def input_selectors(self) -> Tuple[str, ...]:
        """Globs relative to the project root that this stage reads."""
        return ()

    @property
    def descriptor(self) -> StageDescriptor:
        return StageDescriptor(
            kind=self.kind,
            input_selectors=self.input_selectors,
            declaration_output=self.options.declaration,
        )

    @property
    def diagnostics_path(self) -> Optional[Path]:
        diagnostics_class = self.kind.diagnostics_class
        if diagnostics_class is None:
            return None
        return self.settings.diagnostics_path(diagnostics_class)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.settings.root).as_posix()
        except ValueError:
            return path.as_posix()

    async def run(self, config: RunConfig) -> StageResult:
        batch = new_batch(self.kind)
        result = StageResult(kind=self.kind, diagnostics=batch)
        start = time.perf_counter()
        logger.info("Starting %s", self.display_name)
        try:
            await self.execute(batch, result, config)
        finally:
            destination = self.diagnostics_path
            if destination is not None:
                result.fatal = flush(batch, destination, config)
            if batch:
                result.ok = False
            result.duration_seconds = round(time.perf_counter() - start, 3)
        logger.info(
            "Finished %s in %.2fs (%s)",
            self.display_name,
            result.duration_seconds,
            "ok" if result.ok else f"{len(batch)} problem(s)" if batch else "failed",
        )
        return result

    @abstractmethod
    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        """Do the stage's work, recording problems into ``batch`` and outputs into ``result``."""


__all__ = ["Stage"]
