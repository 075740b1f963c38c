"""High-level pipeline orchestration for laborer."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from laborer.config import Settings
from laborer.core.tools import ToolRunner

from .errors import LaborerPipelineError
from .models import StageKind, StageOptions, StageResult
from .run_mode import (
    RunConfig,
    current_run_config,
    enable_fail_on_error,
    enable_verbose_stats,
)
from .stages import create_stage

logger = logging.getLogger(__name__)


@dataclass
class LaborerPipeline:
    """Runs a list of stages against one project with one frozen run configuration.

    Sequential runs stop after the first stage that escalates under
    fail-on-error. Parallel runs let every sibling finish and flush before
    reporting, so no stage is cut off with unwritten diagnostics.
    """

    settings: Settings
    config: RunConfig = field(default_factory=RunConfig)
    options: StageOptions = field(default_factory=StageOptions)
    runner: Optional[ToolRunner] = None

    async def run_stages(self, names: Sequence[str | StageKind], *, parallel: bool = False) -> List[StageResult]:
        stages = [create_stage(name, self.settings, self.options, self.runner) for name in names]

        if parallel:
            outcomes = await asyncio.gather(*(stage.run(self.config) for stage in stages), return_exceptions=True)
            failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if failures:
                raise failures[0]
            return list(outcomes)

        results: List[StageResult] = []
        for stage in stages:
            result = await stage.run(self.config)
            results.append(result)
            if result.fatal:
                logger.error("%s failed with fail-on-error set; skipping remaining stages", stage.display_name)
                break
        return results

    def run(self, names: Sequence[str | StageKind], *, parallel: bool = False) -> List[StageResult]:
        return asyncio.run(self.run_stages(names, parallel=parallel))


async def run_stage(
    name: str | StageKind,
    settings: Settings,
    config: Optional[RunConfig] = None,
    options: Optional[StageOptions] = None,
    runner: Optional[ToolRunner] = None,
) -> StageResult:
    """Run one stage; ``config`` defaults to the current run-mode flags."""
    stage = create_stage(name, settings, options, runner)
    return await stage.run(config if config is not None else current_run_config())


def exit_code(results: Iterable[StageResult]) -> int:
    """1 if fail-on-error escalated or a test runner failed, else 0."""
    for result in results:
        if result.fatal:
            return 1
        if not result.ok and result.kind.diagnostics_class is None:
            return 1
    return 0


__all__ = [
    "LaborerPipeline",
    "LaborerPipelineError",
    "RunConfig",
    "StageKind",
    "StageOptions",
    "StageResult",
    "current_run_config",
    "enable_fail_on_error",
    "enable_verbose_stats",
    "exit_code",
    "run_stage",
]
