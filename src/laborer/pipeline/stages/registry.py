"""
Stage registry: the static mapping from stage kind to stage factory.

Every kind is declared here up front and the table is checked on import, so a
missing or mis-wired stage fails at startup rather than mid-build.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from laborer.config import Settings
from laborer.core.tools import ToolRunner
from laborer.pipeline.models import StageKind, StageOptions

from .base import Stage
from .bundle import BundleStage, BundleWatchStage
from .clean import CleanStage
from .mocha import mocha_stage_factory
from .style import StyleStage
from .typescript import client_typescript_stage, server_typescript_stage

logger = logging.getLogger(__name__)

StageFactory = Callable[[Settings, Optional[StageOptions], Optional[ToolRunner]], Stage]

STAGE_FACTORIES: Dict[StageKind, StageFactory] = {
    StageKind.STYLE: StyleStage,
    StageKind.CLIENT_TYPESCRIPT: client_typescript_stage,
    StageKind.SERVER_TYPESCRIPT: server_typescript_stage,
    StageKind.UTILS_TEST: mocha_stage_factory(StageKind.UTILS_TEST),
    StageKind.MODELS_TEST: mocha_stage_factory(StageKind.MODELS_TEST),
    StageKind.CLIENT_TEST: mocha_stage_factory(StageKind.CLIENT_TEST),
    StageKind.SERVER_TEST: mocha_stage_factory(StageKind.SERVER_TEST),
    StageKind.CLIENT_BUNDLE: BundleStage,
    StageKind.CLIENT_BUNDLE_WATCH: BundleWatchStage,
    StageKind.CLEAN: CleanStage,
}


def validate_registry(factories: Optional[Dict[StageKind, StageFactory]] = None) -> None:
    """Check that every kind has a factory and each factory builds a stage of its kind."""
    table = STAGE_FACTORIES if factories is None else factories
    missing = [kind.value for kind in StageKind if kind not in table]
    if missing:
        raise RuntimeError(f"No stage registered for: {', '.join(missing)}")

    probe = Settings(root=".")
    for kind, factory in table.items():
        stage = factory(probe, None, ToolRunner())
        if not isinstance(stage, Stage) or stage.kind is not kind:
            raise RuntimeError(f"Factory for {kind.value} built {type(stage).__name__} ({getattr(stage, 'kind', None)})")


def resolve_kind(name: str | StageKind) -> StageKind:
    if isinstance(name, StageKind):
        return name
    try:
        return StageKind(name)
    except ValueError:
        available = ", ".join(kind.value for kind in StageKind)
        raise KeyError(f"Unknown stage: '{name}'. Available stages: {available}") from None


def create_stage(
    name: str | StageKind,
    settings: Settings,
    options: Optional[StageOptions] = None,
    runner: Optional[ToolRunner] = None,
) -> Stage:
    """Build a fresh stage instance; each instance run gets its own diagnostic batch."""
    kind = resolve_kind(name)
    stage = STAGE_FACTORIES[kind](settings, options, runner)
    logger.debug("Created stage %s", kind.value)
    return stage


def list_stages() -> List[StageKind]:
    return list(STAGE_FACTORIES)


validate_registry()


__all__ = [
    "STAGE_FACTORIES",
    "StageFactory",
    "validate_registry",
    "resolve_kind",
    "create_stage",
    "list_stages",
]
