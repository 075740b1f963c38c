"""Process-wide run-mode toggles.

The two flags are set once during setup (normally by the CLI) and then frozen
into a :class:`RunConfig` that is handed to every stage. Stages never read the
module state directly, so a run sees one consistent configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunConfig:
    show_stats: bool = False
    fail_on_error: bool = False


_show_stats = False
_fail_on_error = False


def enable_verbose_stats() -> None:
    """Print a bundler summary after every bundle completion."""
    global _show_stats
    if not _show_stats:
        logger.debug("Verbose bundle stats enabled")
    _show_stats = True


def enable_fail_on_error() -> None:
    """Escalate any non-empty diagnostic flush to a failing exit status.

    There is no matching disable; once enabled it stays on for the process.
    """
    global _fail_on_error
    if not _fail_on_error:
        logger.debug("Fail-on-error enabled")
    _fail_on_error = True


def current_run_config() -> RunConfig:
    return RunConfig(show_stats=_show_stats, fail_on_error=_fail_on_error)


def reset_run_mode() -> None:
    """Restore the defaults. Only meant for test isolation."""
    global _show_stats, _fail_on_error
    _show_stats = False
    _fail_on_error = False


__all__ = [
    "RunConfig",
    "enable_verbose_stats",
    "enable_fail_on_error",
    "current_run_config",
    "reset_run_mode",
]
