"""Style stage: lint, compile and vendor-prefix the client stylesheets."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from laborer.core import reporters
from laborer.core.file_manager import FileManager
from laborer.pipeline.diagnostics import record
from laborer.pipeline.models import DiagnosticBatch, StageKind, StageResult
from laborer.pipeline.run_mode import RunConfig

from .base import Stage

logger = logging.getLogger(__name__)

# scss-lint: 0 clean, 1 warnings, 2 errors; anything else means the linter itself failed
_SCSS_LINT_REPORT_CODES = {0, 1, 2}


class StyleStage(Stage):
    kind = StageKind.STYLE

    @property
    def input_selectors(self) -> Tuple[str, ...]:
        return (f"{self._relative(self.settings.src_dir)}/client/**/*.scss",)

    @property
    def output_path(self) -> Path:
        return self.settings.public_dir / self.options.style_name

    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        stylesheets = FileManager.select_files(self.settings.root, self.input_selectors)
        if not stylesheets:
            logger.info("No stylesheets under %s", self.settings.src_dir / "client")
            result.skipped = True
            return

        await self._lint(stylesheets, batch)

        compiled: List[str] = []
        syntax_error = False
        for stylesheet in stylesheets:
            if stylesheet.name.startswith("_"):
                continue
            css = await self._compile(stylesheet, batch)
            if css is None:
                syntax_error = True
            else:
                compiled.append(css)

        if syntax_error:
            logger.warning("Stylesheet output halted: %s was not written", self.output_path)
            return

        prefixed = await self._prefix("\n".join(compiled), batch)
        if prefixed is None:
            return

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(prefixed, encoding="utf-8")
        result.outputs.append(self.output_path)

    def _lint_config(self, scratch: Path) -> Optional[Path]:
        if self.options.rules is not None:
            path = scratch / "scss-lint.yml"
            path.write_text(yaml.safe_dump({"linters": dict(self.options.rules)}), encoding="utf-8")
            return path
        if self.settings.sass_lint_config.is_file():
            return self.settings.sass_lint_config
        return None

    async def _lint(self, stylesheets: List[Path], batch: DiagnosticBatch) -> None:
        with tempfile.TemporaryDirectory(prefix="laborer-scss-lint-") as scratch:
            args: List[str] = ["--format", "JSON"]
            lint_config = self._lint_config(Path(scratch))
            if lint_config is not None:
                args += ["--config", str(lint_config)]
            output = await self.runner.run_async(
                "scss-lint", [*args, *map(str, stylesheets)], cwd=self.settings.root
            )

        messages = reporters.scss_lint_messages(output.stdout)
        if messages is None and output.returncode not in _SCSS_LINT_REPORT_CODES:
            record(batch, f"scss-lint: {output.stderr or output.stdout or f'exit status {output.returncode}'}")
            return
        for message in messages or []:
            record(batch, message)

    async def _compile(self, stylesheet: Path, batch: DiagnosticBatch) -> Optional[str]:
        output = await self.runner.run_async(
            "sass",
            ["--no-source-map", "--load-path", str(self.settings.src_dir / "client"), str(stylesheet)],
            cwd=self.settings.root,
        )
        if output.ok:
            return output.stdout
        for message in reporters.sass_messages(output.stderr, stylesheet):
            record(batch, message)
        return None

    async def _prefix(self, css: str, batch: DiagnosticBatch) -> Optional[str]:
        output = await self.runner.run_async(
            "postcss",
            ["--use", "autoprefixer", "--no-map"],
            cwd=self.settings.root,
            input_text=css,
            env={"BROWSERSLIST": ", ".join(self.settings.browsers)},
        )
        if output.ok:
            return output.stdout
        record(batch, f"postcss: {output.stderr or f'exit status {output.returncode}'}")
        return None


__all__ = ["StyleStage"]
