"""Clean stage: remove the whole build output tree."""

from __future__ import annotations

import logging

from laborer.core.file_manager import FileManager
from laborer.pipeline.errors import LaborerPipelineError
from laborer.pipeline.models import DiagnosticBatch, StageKind, StageResult
from laborer.pipeline.run_mode import RunConfig

from .base import Stage

logger = logging.getLogger(__name__)


class CleanStage(Stage):
    kind = StageKind.CLEAN

    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        build_dir = self.settings.build_dir
        try:
            removed = FileManager.remove_tree(build_dir)
        except OSError as exc:
            raise LaborerPipelineError(f"Failed to delete {build_dir}: {exc}", stage="clean") from exc

        if removed:
            logger.info("Removed %s", build_dir)
        else:
            logger.debug("%s already absent", build_dir)
            result.skipped = True


__all__ = ["CleanStage"]
