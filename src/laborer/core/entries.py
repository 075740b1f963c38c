"""Bundle entry discovery over compiled client output."""

from __future__ import annotations

import logging
from pathlib import Path

from laborer.pipeline.errors import LaborerPipelineError
from laborer.pipeline.models import EntryMapping

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = "-entry"
ENTRY_EXTENSION = ".js"


def discover_entries(
    directory: Path,
    suffix: str = ENTRY_SUFFIX,
    extension: str = ENTRY_EXTENSION,
) -> EntryMapping:
    """Map bundle names to files named ``<name><suffix><extension>`` directly in ``directory``.

    An empty mapping is a normal result. A missing directory is not: the client
    compile has to have run first.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise LaborerPipelineError(
            f"Compiled client directory does not exist: {directory}. Run the client-typescript stage first.",
            stage="entry_discovery",
        )

    entries: EntryMapping = {}
    try:
        candidates = sorted(directory.iterdir())
    except OSError as exc:
        raise LaborerPipelineError(f"Cannot list {directory}: {exc}", stage="entry_discovery") from exc

    for candidate in candidates:
        name = candidate.name
        if not candidate.is_file() or not name.endswith(extension):
            continue
        stem = name[: -len(extension)]
        if not stem.endswith(suffix) or stem == suffix:
            continue
        entries[stem[: -len(suffix)]] = candidate

    logger.debug("Discovered %s bundle entr%s in %s", len(entries), "y" if len(entries) == 1 else "ies", directory)
    return entries


__all__ = ["discover_entries", "ENTRY_SUFFIX", "ENTRY_EXTENSION"]
