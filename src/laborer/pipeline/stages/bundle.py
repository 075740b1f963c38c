"""Client bundle stage.

Entries are discovered from the compiled client output (``<name>-entry.js``),
a webpack configuration is generated for them, and the bundler's stats are
read back from a marker-prefixed line the generated config prints after each
compilation. The watch variant keeps the bundler running and handles every
rebuild the same way.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from rich.console import Console
from rich.table import Table

from laborer.core import reporters
from laborer.core.entries import discover_entries
from laborer.pipeline.diagnostics import console as diagnostics_console
from laborer.pipeline.diagnostics import flush, new_batch, print_batch, record
from laborer.pipeline.errors import LaborerPipelineError
from laborer.pipeline.models import DiagnosticBatch, EntryMapping, StageKind, StageResult
from laborer.pipeline.run_mode import RunConfig

from .base import Stage

logger = logging.getLogger(__name__)

console = Console()

STATS_MARKER = "@@laborer-stats@@ "
CONFIG_FILE_NAME = "webpack.laborer.config.js"

SVGO_PLUGINS: List[Dict[str, Any]] = [
    {
        "name": "preset-default",
        "params": {
            "overrides": {
                "convertPathData": False,
                "convertColors": {"shorthex": True},
            }
        },
    },
    {"name": "removeTitle"},
    {"name": "removeDimensions"},
]

LOADER_RULES: List[Dict[str, Any]] = [
    {
        "test": r"\.svg$",
        "use": ["raw-loader", {"loader": "svgo-loader", "options": {"plugins": SVGO_PLUGINS}}],
    },
    {
        "test": r"\.css$",
        "use": ["style-loader", "css-loader"],
    },
]

_CONFIG_TEMPLATE = """\
// Generated by laborer; rewritten on every bundle run.
const MARKER = {marker};
const config = {config};

config.module.rules = config.module.rules.map((rule) =>
  Object.assign({{}}, rule, {{ test: new RegExp(rule.test) }})
);
config.plugins = [
  {{
    apply(compiler) {{
      compiler.hooks.done.tap("LaborerStats", (stats) => {{
        const json = stats.toJson({{
          all: false,
          assets: true,
          errors: true,
          warnings: true,
          timings: true,
          hash: true,
        }});
        process.stdout.write(MARKER + JSON.stringify(json) + "\\n");
      }});
    }},
  }},
];

module.exports = config;
"""


def build_webpack_config(entries: EntryMapping, output_dir: Path, *, watch: bool = False) -> Dict[str, Any]:
    return {
        "mode": "production",
        "entry": {name: str(path) for name, path in entries.items()},
        "output": {"path": str(output_dir), "filename": "[name].js"},
        "module": {"rules": LOADER_RULES},
        "watch": watch,
        "stats": "none",
    }


def render_webpack_config(config: Mapping[str, Any]) -> str:
    return _CONFIG_TEMPLATE.format(marker=json.dumps(STATS_MARKER), config=json.dumps(config, indent=2))


def parse_stats_line(line: str) -> Optional[Dict[str, Any]]:
    """Stats object from a marker line, or None for ordinary bundler output."""
    if not line.startswith(STATS_MARKER):
        return None
    try:
        stats = json.loads(line[len(STATS_MARKER):])
    except json.JSONDecodeError as exc:
        return {"__fatal__": f"unreadable stats ({exc})"}
    return stats if isinstance(stats, dict) else {"__fatal__": "stats were not an object"}


def _format_size(size: Any) -> str:
    try:
        value = float(size)
    except (TypeError, ValueError):
        return "-"
    for unit in ("B", "KiB", "MiB"):
        if value < 1024 or unit == "MiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return "-"


def print_stats(stats: Mapping[str, Any], out: Optional[Console] = None) -> None:
    table = Table(title=f"Bundle {stats.get('hash', '')}".strip())
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("Size", style="green", justify="right")
    for asset in stats.get("assets") or []:
        table.add_row(str(asset.get("name", "?")), _format_size(asset.get("size")))

    target = out or console
    target.print(table)
    target.print(
        f"Time: {stats.get('time', '?')} ms, "
        f"errors: {len(stats.get('errors') or [])}, warnings: {len(stats.get('warnings') or [])}"
    )


def handle_bundle_result(
    batch: DiagnosticBatch,
    stats: Optional[Mapping[str, Any]],
    *,
    show_stats: bool,
    fatal_detail: str = "",
) -> None:
    """Record one compilation's outcome into ``batch``.

    Missing or unreadable stats mean the bundler itself failed, which becomes a
    single prefixed record. Otherwise every error and warning is recorded.
    """
    if stats is None or "__fatal__" in stats:
        detail = stats["__fatal__"] if stats else fatal_detail
        record(batch, reporters.fatal_bundle_message(detail))
    else:
        for message in reporters.webpack_messages(stats):
            record(batch, message)
        if show_stats:
            print_stats(stats)

    if batch:
        print_batch(batch, diagnostics_console)


class BundleStage(Stage):
    kind = StageKind.CLIENT_BUNDLE
    watch = False

    @property
    def client_dir(self) -> Path:
        return self.settings.build_dir / "client"

    @property
    def input_selectors(self):
        return (f"{self._relative(self.client_dir)}/*-entry.js",)

    def _show_stats(self, config: RunConfig) -> bool:
        if self.options.show_stats is not None:
            return self.options.show_stats
        return config.show_stats

    def write_config(self, entries: EntryMapping) -> Path:
        config = build_webpack_config(entries, self.settings.public_dir, watch=self.watch)
        path = self.settings.staging_dir / CONFIG_FILE_NAME
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_webpack_config(config), encoding="utf-8")
        return path

    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        entries = discover_entries(self.client_dir)
        if not entries:
            logger.info("No *-entry.js files in %s; nothing to bundle", self.client_dir)
            result.skipped = True
            return

        config_path = self.write_config(entries)
        collected: List[Dict[str, Any]] = []
        chatter: List[str] = []

        def on_line(line: str) -> None:
            stats = parse_stats_line(line)
            if stats is None:
                chatter.append(line)
                logger.debug("webpack: %s", line)
            else:
                collected.append(stats)

        returncode = await self.runner.stream_async(
            "webpack", ["--config", str(config_path)], on_line, cwd=self.settings.root
        )
        stats = collected[-1] if collected else None
        fatal_detail = "\n".join(chatter[-20:]) or f"webpack exited with status {returncode}"
        handle_bundle_result(batch, stats, show_stats=self._show_stats(config), fatal_detail=fatal_detail)

        if stats is not None and "__fatal__" not in stats:
            result.outputs.extend(self.settings.public_dir / f"{name}.js" for name in entries)


class BundleWatchStage(BundleStage):
    """Keeps webpack in watch mode; every rebuild gets its own batch and flush.

    The stage returns when the bundler process exits, or as soon as a rebuild
    escalates under fail-on-error, in which case the bundler is terminated.
    """

    kind = StageKind.CLIENT_BUNDLE_WATCH
    watch = True

    async def run(self, config: RunConfig) -> StageResult:
        try:
            entries = discover_entries(self.client_dir)
        except LaborerPipelineError:
            flush(new_batch(self.kind), self.diagnostics_path, config)
            raise

        if not entries:
            logger.info("No *-entry.js files in %s; nothing to watch", self.client_dir)
            batch = new_batch(self.kind)
            flush(batch, self.diagnostics_path, config)
            return StageResult(kind=self.kind, diagnostics=batch, skipped=True)

        config_path = self.write_config(entries)
        show_stats = self._show_stats(config)
        results: List[StageResult] = []
        chatter: List[str] = []
        stop = threading.Event()

        def on_line(line: str) -> None:
            if stop.is_set():
                return
            stats = parse_stats_line(line)
            if stats is None:
                chatter.append(line)
                logger.debug("webpack: %s", line)
                return
            outcome = self._complete(stats, show_stats, config)
            results.append(outcome)
            chatter.clear()
            if outcome.fatal:
                stop.set()

        logger.info("Watching %s bundle entr%s", len(entries), "y" if len(entries) == 1 else "ies")
        returncode = await self.runner.stream_async(
            "webpack", ["--config", str(config_path)], on_line, cwd=self.settings.root, stop=stop
        )
        if stop.is_set():
            return results[-1]
        if returncode != 0 or not results:
            detail = "\n".join(chatter[-20:]) or f"webpack exited with status {returncode}"
            results.append(self._complete(None, show_stats, config, fatal_detail=detail))
        return results[-1]

    def _complete(
        self,
        stats: Optional[Mapping[str, Any]],
        show_stats: bool,
        config: RunConfig,
        fatal_detail: str = "",
    ) -> StageResult:
        batch = new_batch(self.kind)
        handle_bundle_result(batch, stats, show_stats=show_stats, fatal_detail=fatal_detail)
        fatal = flush(batch, self.diagnostics_path, config)
        if fatal:
            logger.error("Bundle rebuild reported %s problem(s) with fail-on-error set; stopping watch", len(batch))
        return StageResult(kind=self.kind, diagnostics=batch, ok=not batch, fatal=fatal)


__all__ = [
    "BundleStage",
    "BundleWatchStage",
    "build_webpack_config",
    "render_webpack_config",
    "parse_stats_line",
    "handle_bundle_result",
    "print_stats",
    "STATS_MARKER",
    "SVGO_PLUGINS",
    "LOADER_RULES",
]
