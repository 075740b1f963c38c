"""
laborer - build pipeline orchestration for mixed SCSS/TypeScript web projects

Sequences stylesheet compilation, client and server TypeScript compilation,
mocha test runs and client bundling, and collects every tool's diagnostics
into plain-text files an IDE can pick up.
"""

__version__ = "1.0.0"
__description__ = "Build pipeline orchestrator with IDE-friendly diagnostics"

# Main entry points
from laborer.pipeline import (
    LaborerPipeline,
    LaborerPipelineError,
    RunConfig,
    StageKind,
    StageOptions,
    StageResult,
    current_run_config,
    enable_fail_on_error,
    enable_verbose_stats,
    exit_code,
    run_stage,
)
from laborer.config import Settings, load_settings
from laborer.core.entries import discover_entries

__all__ = [
    "LaborerPipeline",
    "LaborerPipelineError",
    "RunConfig",
    "Settings",
    "StageKind",
    "StageOptions",
    "StageResult",
    "current_run_config",
    "discover_entries",
    "enable_fail_on_error",
    "enable_verbose_stats",
    "exit_code",
    "load_settings",
    "run_stage",
    "__version__",
]
