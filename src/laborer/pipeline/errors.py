"""Exception types shared by the laborer pipeline."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, eq=False)
class LaborerPipelineError(RuntimeError):
    """Raised when a stage cannot complete for reasons outside the code under build."""

    message: str
    stage: str | None = None

    def __post_init__(self) -> None:
        # slots=True rebuilds the class, so zero-argument super() is unusable here
        RuntimeError.__init__(self, self.formatted_message)

    @property
    def formatted_message(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class ToolNotFoundError(LaborerPipelineError):
    """An external build tool could not be located."""


__all__ = ["LaborerPipelineError", "ToolNotFoundError"]
