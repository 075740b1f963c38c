"""Type-compile stages for the client and server TypeScript trees.

Both variants lint their sources, merge them with the ambient declarations
under ``typings/`` and compile into a scratch directory. A file whose source
has a reported compile error is never emitted; its siblings still are. Code
and declaration files are then written to their own destinations.
"""

from __future__ import annotations

import json
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from laborer.core import reporters
from laborer.core.file_manager import FileManager, make_path_fixer
from laborer.pipeline.composer import ComposedSources, compose
from laborer.pipeline.diagnostics import extract_location, record
from laborer.pipeline.models import DiagnosticBatch, StageKind, StageResult
from laborer.pipeline.run_mode import RunConfig

from .base import Stage

logger = logging.getLogger(__name__)

COMPILER_OPTIONS: Tuple[str, ...] = (
    "--noImplicitAny",
    "--target", "ES5",
    "--module", "commonjs",
    "--sourceMap",
    "--pretty", "false",
)

# tslint: 0 clean, 2 lint failures; 1 is a usage or configuration error
_TSLINT_FAILURE_CODE = 1


@dataclass(frozen=True)
class TypeScriptVariant:
    kind: StageKind
    roots: Tuple[str, ...]
    staged: bool
    source_root: str


CLIENT_VARIANT = TypeScriptVariant(
    kind=StageKind.CLIENT_TYPESCRIPT,
    roots=("client", "common"),
    staged=True,
    source_root="../client",
)
SERVER_VARIANT = TypeScriptVariant(
    kind=StageKind.SERVER_TYPESCRIPT,
    roots=("server", "common"),
    staged=False,
    source_root="../../src/server",
)


@dataclass
class CompiledUnit:
    source: Path
    code: List[Path] = field(default_factory=list)
    declarations: List[Path] = field(default_factory=list)


@dataclass
class CompileResult:
    code_dir: Path
    declaration_dir: Path
    units: Dict[Path, CompiledUnit] = field(default_factory=dict)
    failed_sources: Set[Path] = field(default_factory=set)
    global_failure: bool = False

    def emittable(self) -> List[CompiledUnit]:
        if self.global_failure:
            return []
        return [unit for source, unit in self.units.items() if source not in self.failed_sources]


def _source_name(relative_output: Path) -> Path:
    name = relative_output.name
    for suffix in (".d.ts", ".js.map", ".js"):
        if name.endswith(suffix):
            return relative_output.with_name(name[: -len(suffix)] + ".ts")
    return relative_output


class TypeScriptStage(Stage):
    variant: TypeScriptVariant

    def __init__(self, settings, options=None, runner=None, *, variant: TypeScriptVariant = CLIENT_VARIANT):
        self.variant = variant
        self.kind = variant.kind
        super().__init__(settings, options, runner)

    @property
    def input_selectors(self) -> Tuple[str, ...]:
        roots = ",".join(self.variant.roots)
        return (f"{self._relative(self.settings.src_dir)}/{{{roots}}}/**/*.ts",)

    async def execute(self, batch: DiagnosticBatch, result: StageResult, config: RunConfig) -> None:
        sources = FileManager.select_files(self.settings.root, self.input_selectors)
        if not sources:
            logger.info("No TypeScript sources for %s", self.display_name)
            result.skipped = True
            return

        fix_path: Optional[Callable[[str], str]] = None
        compile_base = self.settings.src_dir
        compile_inputs = sources
        if self.variant.staged:
            compile_base = self.settings.staging_dir
            compile_inputs = FileManager.stage_files(sources, self.settings.src_dir, compile_base)
            fix_path = make_path_fixer(compile_base, self.settings.src_dir, self.settings.root)

        with tempfile.TemporaryDirectory(prefix="laborer-tsc-") as scratch:
            scratch_dir = Path(scratch)
            await self._lint(compile_inputs, scratch_dir, batch, fix_path)

            typings = FileManager.select_files(self.settings.typings_dir, ["**/*.d.ts"])
            unit = compose(sources=compile_inputs, typings=typings)
            logger.debug("%s compiles %s source(s) with %s declaration file(s)",
                          self.display_name, len(unit.from_origin("sources")), len(unit.from_origin("typings")))

            compiled = await self._compile(unit, compile_base, scratch_dir, batch, fix_path)
            result.outputs.extend(self._write(compiled))

    def _lint_config(self, scratch: Path) -> Optional[Path]:
        if self.options.rules is not None:
            path = scratch / "tslint.json"
            path.write_text(json.dumps({"rules": dict(self.options.rules)}, indent=2), encoding="utf-8")
            return path
        if self.settings.tslint_config.is_file():
            return self.settings.tslint_config
        return None

    async def _lint(
        self,
        files: List[Path],
        scratch: Path,
        batch: DiagnosticBatch,
        fix_path: Optional[Callable[[str], str]],
    ) -> None:
        args: List[str] = ["--format", "json"]
        lint_config = self._lint_config(scratch)
        if lint_config is not None:
            args += ["--config", str(lint_config)]
        output = await self.runner.run_async("tslint", [*args, *map(str, files)], cwd=self.settings.root)

        messages = reporters.tslint_messages(output.stdout, fix_path)
        if messages is None:
            if output.returncode == _TSLINT_FAILURE_CODE or output.stderr.strip():
                record(batch, f"tslint: {output.stderr or output.stdout or f'exit status {output.returncode}'}")
            return
        for message in messages:
            record(batch, message)

    def _compiler_args(self, unit: ComposedSources, compile_base: Path, scratch: Path) -> List[str]:
        args = [
            *COMPILER_OPTIONS,
            "--sourceRoot", self.variant.source_root,
            "--rootDir", str(compile_base),
            "--outDir", str(scratch / "code"),
        ]
        if self.options.declaration:
            args += ["--declaration", "--declarationDir", str(scratch / "declarations")]
        return args + [str(path) for path in unit.paths()]

    def _resolve_reported(self, reported: str) -> Path:
        path = Path(reported)
        if not path.is_absolute():
            path = self.settings.root / path
        return path.resolve()

    async def _compile(
        self,
        unit: ComposedSources,
        compile_base: Path,
        scratch: Path,
        batch: DiagnosticBatch,
        fix_path: Optional[Callable[[str], str]],
    ) -> CompileResult:
        output = await self.runner.run_async(
            "tsc", self._compiler_args(unit, compile_base, scratch), cwd=self.settings.root
        )
        compiled = CompileResult(code_dir=scratch / "code", declaration_dir=scratch / "declarations")

        messages = reporters.tsc_messages(output.stdout)
        if not messages and not output.ok:
            messages = [f"tsc: {output.stderr.strip() or f'exit status {output.returncode}'}"]

        base = compile_base.resolve()
        for message in messages:
            reported, _ = extract_location(message)
            location = self._resolve_reported(reported) if reported is not None else None
            # errors outside the compiled tree (typings, bad options) block every output
            if location is None or not location.is_relative_to(base):
                compiled.global_failure = True
            else:
                compiled.failed_sources.add(location)
            record(batch, fix_path(message) if fix_path else message)

        for directory, attribute in ((compiled.code_dir, "code"), (compiled.declaration_dir, "declarations")):
            if not directory.is_dir():
                continue
            for generated in sorted(directory.rglob("*")):
                if not generated.is_file():
                    continue
                relative = generated.relative_to(directory)
                source = (compile_base / _source_name(relative)).resolve()
                entry = compiled.units.setdefault(source, CompiledUnit(source=source))
                getattr(entry, attribute).append(relative)
        return compiled

    def _write(self, compiled: CompileResult) -> List[Path]:
        emittable = compiled.emittable()
        skipped = len(compiled.units) - len(emittable)
        if skipped:
            logger.info("%s: %s file(s) not emitted because of compile errors", self.display_name, skipped)

        written = FileManager.copy_outputs(
            (compiled.code_dir / relative, self.settings.build_dir / relative)
            for unit in emittable
            for relative in unit.code
        )
        if self.options.declaration:
            written += FileManager.copy_outputs(
                (compiled.declaration_dir / relative, self.settings.declarations_dir / relative)
                for unit in emittable
                for relative in unit.declarations
            )
        return written


def client_typescript_stage(settings, options=None, runner=None) -> TypeScriptStage:
    return TypeScriptStage(settings, options, runner, variant=CLIENT_VARIANT)


def server_typescript_stage(settings, options=None, runner=None) -> TypeScriptStage:
    return TypeScriptStage(settings, options, runner, variant=SERVER_VARIANT)


__all__ = [
    "TypeScriptStage",
    "TypeScriptVariant",
    "CLIENT_VARIANT",
    "SERVER_VARIANT",
    "CompiledUnit",
    "CompileResult",
    "client_typescript_stage",
    "server_typescript_stage",
]
