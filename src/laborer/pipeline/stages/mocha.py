"""Test stages: run compiled mocha suites for one build subdirectory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Tuple

from rich.console import Console

from laborer.core.file_manager import FileManager
from laborer.pipeline.models import DiagnosticBatch, StageKind, StageResult
from laborer.pipeline.run_mode import RunConfig

from .base import Stage

logger = logging.getLogger(__name__)

console = Console()

MOCHA_ARGS: Tuple[str, ...] = ("--reporter", "spec")
TEST_FILE_PATTERN = "**/*.mocha.js"

TEST_TARGETS: Dict[StageKind, str] = {
    StageKind.UTILS_TEST: "utils",
    StageKind.MODELS_TEST: "models",
    StageKind.CLIENT_TEST: "client",
    StageKind.SERVER_TEST: "server",
}


class MochaStage(Stage):
    """Runs ``build/<target>/**/*.mocha.js``; the runner's exit status is the verdict."""

    def __init__(self, settings, options=None, runner=None, *, kind: StageKind = StageKind.UTILS_TEST):
        if kind not in TEST_TARGETS:
            raise ValueError(f"{kind.value} is not a test stage")
        self.kind = kind
        self.target = TEST_TARGETS[kind]
        super().__init__(settings, options, runner)

    @property
    def input_selectors(self) -> Tuple[str, ...]:
        return (f"{self._relative(self.settings.build_dir)}/{self.target}/{TEST_FILE_PATTERN}",)

    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        suites: List[Path] = FileManager.select_files(self.settings.root, self.input_selectors)
        if not suites:
            logger.info("No compiled test suites under %s", self.settings.build_dir / self.target)
            result.skipped = True
            return

        returncode = await self.runner.stream_async(
            "mocha",
            [*MOCHA_ARGS, *map(str, suites)],
            self._echo,
            cwd=self.settings.root,
        )
        result.ok = returncode == 0
        if not result.ok:
            logger.error("%s failed (mocha exit status %s)", self.display_name, returncode)

    @staticmethod
    def _echo(line: str) -> None:
        console.print(line, markup=False, highlight=False)


def mocha_stage_factory(kind: StageKind):
    def factory(settings, options=None, runner=None) -> MochaStage:
        return MochaStage(settings, options, runner, kind=kind)

    factory.__name__ = f"{kind.value.replace('-', '_')}_stage"
    return factory


__all__ = ["MochaStage", "TEST_TARGETS", "MOCHA_ARGS", "mocha_stage_factory"]
