"""Build stages and the registry that wires them up."""

from .base import Stage
from .bundle import BundleStage, BundleWatchStage
from .clean import CleanStage
from .mocha import MochaStage
from .registry import STAGE_FACTORIES, create_stage, list_stages, resolve_kind, validate_registry
from .style import StyleStage
from .typescript import TypeScriptStage

__all__ = [
    "Stage",
    "StyleStage",
    "TypeScriptStage",
    "MochaStage",
    "BundleStage",
    "BundleWatchStage",
    "CleanStage",
    "STAGE_FACTORIES",
    "create_stage",
    "list_stages",
    "resolve_kind",
    "validate_registry",
]
