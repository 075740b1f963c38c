import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    root = Path(__file__).resolve().parent.parent / "src"
    root_str = str(root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_src_on_path()

import pytest  # noqa: E402

from laborer.config import Settings  # noqa: E402
from laborer.core.tools import ToolOutput, ToolRunner  # noqa: E402
from laborer.pipeline.run_mode import reset_run_mode  # noqa: E402


class FakeToolRunner(ToolRunner):
    """Stands in for the Node tools.

    ``handlers`` maps a tool name to ``handler(args, input_text)``. For
    :meth:`run` the handler returns a ToolOutput; for :meth:`stream` it returns
    ``(lines, returncode)``. Tools without a handler succeed silently.
    """

    def __init__(self, handlers=None):
        super().__init__(None)
        self.handlers = dict(handlers or {})
        self.calls = []

    def resolve(self, tool):
        return tool

    def run(self, tool, args, *, cwd=None, input_text=None, env=None):
        args = [str(arg) for arg in args]
        self.calls.append({"tool": tool, "args": args, "input": input_text, "env": env, "cwd": cwd})
        handler = self.handlers.get(tool)
        if handler is None:
            return ToolOutput(argv=[tool, *args], returncode=0)
        return handler(args, input_text)

    def stream(self, tool, args, on_line, *, cwd=None, env=None, stop=None):
        args = [str(arg) for arg in args]
        self.calls.append({"tool": tool, "args": args, "input": None, "env": env, "cwd": cwd, "stop": stop})
        handler = self.handlers.get(tool)
        if handler is None:
            return 0
        lines, returncode = handler(args, None)
        for line in lines:
            on_line(line)
        return returncode

    def calls_for(self, tool):
        return [call for call in self.calls if call["tool"] == tool]


def output(stdout="", stderr="", returncode=0, tool="tool"):
    return ToolOutput(argv=[tool], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture(autouse=True)
def _isolated_run_mode():
    reset_run_mode()
    yield
    reset_run_mode()


@pytest.fixture
def project(tmp_path):
    for directory in ("src/client", "src/common", "src/server", "typings"):
        (tmp_path / directory).mkdir(parents=True)
    return Settings(root=tmp_path)


@pytest.fixture
def fake_runner():
    return FakeToolRunner()
