"""Invocation of the external Node build tools.

Every tool is treated as an opaque command: we hand it arguments (and maybe
stdin) and read back its exit status and output. Blocking calls run in the
event loop's default executor so a stage coroutine suspends while the tool
works.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from laborer.pipeline.errors import ToolNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ToolOutput:
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ToolRunner:
    """Locate and run tools, preferring the project's ``node_modules/.bin``."""

    def __init__(self, node_bin: Optional[Path] = None):
        self.node_bin = Path(node_bin) if node_bin else None

    def resolve(self, tool: str) -> str:
        if self.node_bin is not None:
            for name in (tool, f"{tool}.cmd"):
                candidate = self.node_bin / name
                if candidate.exists():
                    return str(candidate)

        found = shutil.which(tool)
        if not found:
            raise ToolNotFoundError(
                f"{tool} was not found in {self.node_bin or 'node_modules/.bin'} or PATH. "
                f"Run `npm install` in the project root and retry.",
                stage="tools",
            )
        return found

    def _environment(self, env: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
        if not env:
            return None
        merged = dict(os.environ)
        merged.update(env)
        return merged

    def run(
        self,
        tool: str,
        args: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        input_text: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> ToolOutput:
        argv = [self.resolve(tool), *[str(arg) for arg in args]]
        logger.debug("Running %s", " ".join(argv))
        try:
            completed = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                input=input_text,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self._environment(env),
            )
        except OSError as exc:
            raise ToolNotFoundError(f"{tool} could not be executed: {exc}", stage="tools") from exc
        return ToolOutput(argv=argv, returncode=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)

    def stream(
        self,
        tool: str,
        args: Sequence[str],
        on_line: Callable[[str], None],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        stop: Optional[threading.Event] = None,
    ) -> int:
        """Run a tool and hand each stdout line (stderr merged) to ``on_line``.

        Setting ``stop`` terminates the tool; its exit status is still returned.
        """
        argv = [self.resolve(tool), *[str(arg) for arg in args]]
        logger.debug("Streaming %s", " ".join(argv))
        try:
            process = subprocess.Popen(
                argv,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=self._environment(env),
            )
        except OSError as exc:
            raise ToolNotFoundError(f"{tool} could not be executed: {exc}", stage="tools") from exc

        if stop is not None:
            threading.Thread(target=_terminate_when_set, args=(stop, process), daemon=True).start()

        with process:
            for line in process.stdout:
                on_line(line.rstrip("\n"))
        return process.returncode

    async def run_async(self, tool: str, args: Sequence[str], **kwargs) -> ToolOutput:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self.run, tool, args, **kwargs))

    async def stream_async(
        self,
        tool: str,
        args: Sequence[str],
        on_line: Callable[[str], None],
        **kwargs,
    ) -> int:
        """Like :meth:`stream`, but ``on_line`` is called on the event loop thread."""
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue = asyncio.Queue()
        finished = object()

        def forward(line: str) -> None:
            loop.call_soon_threadsafe(lines.put_nowait, line)

        def pump() -> int:
            try:
                return self.stream(tool, args, forward, **kwargs)
            finally:
                loop.call_soon_threadsafe(lines.put_nowait, finished)

        pumping = loop.run_in_executor(None, pump)
        while True:
            line = await lines.get()
            if line is finished:
                break
            on_line(line)
        return await pumping


def _terminate_when_set(stop: threading.Event, process: subprocess.Popen) -> None:
    while process.poll() is None:
        if stop.wait(0.2):
            logger.debug("Terminating %s", process.args[0])
            process.terminate()
            return


__all__ = ["ToolOutput", "ToolRunner"]
