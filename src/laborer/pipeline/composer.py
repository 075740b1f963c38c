"""Merge independent file sources into one compile unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: Path
    origin: str


@dataclass(slots=True)
class ComposedSources:
    files: List[SourceFile] = field(default_factory=list)

    def paths(self) -> List[Path]:
        return [item.path for item in self.files]

    def from_origin(self, origin: str) -> List[Path]:
        return [item.path for item in self.files if item.origin == origin]

    def origin_of(self, path: Path) -> Optional[str]:
        """Which source group a path came from, or None if it is not part of the unit."""
        target = Path(path)
        for item in self.files:
            if item.path == target:
                return item.origin
        return None

    def __len__(self) -> int:
        return len(self.files)


def compose(**sources: Iterable[Path]) -> ComposedSources:
    """Merge named groups in the order given; a path keeps the first group that named it."""
    seen: Dict[Path, str] = {}
    composed = ComposedSources()
    for origin, paths in sources.items():
        for path in paths:
            path = Path(path)
            if path in seen:
                continue
            seen[path] = origin
            composed.files.append(SourceFile(path=path, origin=origin))
    return composed


__all__ = ["SourceFile", "ComposedSources", "compose"]
