import asyncio
import json
from pathlib import Path

from conftest import FakeToolRunner, output

from laborer.pipeline.models import StageKind, StageOptions
from laborer.pipeline.run_mode import RunConfig
from laborer.pipeline.stages.typescript import client_typescript_stage, server_typescript_stage


def _write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _option(args, name):
    return args[args.index(name) + 1] if name in args else None


def fake_tsc(root: Path, broken=()):
    """Emits .js/.js.map (and .d.ts) for every input and reports errors for ``broken`` names."""

    def handler(args, _input):
        root_dir = Path(_option(args, "--rootDir"))
        out_dir = Path(_option(args, "--outDir"))
        declaration_dir = _option(args, "--declarationDir")
        lines = []
        for arg in args:
            if not arg.endswith(".ts") or arg.endswith(".d.ts"):
                continue
            source = Path(arg)
            relative = source.relative_to(root_dir)
            _write(out_dir / relative.with_suffix(".js"), "// js")
            _write(out_dir / relative.with_name(relative.stem + ".js.map"), "{}")
            if declaration_dir:
                _write(Path(declaration_dir) / relative.with_suffix(".d.ts"), "// d.ts")
            if source.name in broken:
                shown = source.relative_to(root).as_posix()
                lines.append(f"{shown}(3,5): error TS7006: Parameter 'x' implicitly has an 'any' type.")
        return output(stdout="\n".join(lines), returncode=2 if lines else 0, tool="tsc")

    return handler


def test_client_compile_error_is_reported_at_source_path_and_not_emitted(project):
    _write(project.src_dir / "client" / "good.ts", "export const a = 1;")
    _write(project.src_dir / "client" / "bad.ts", "export function f(x) {}")
    _write(project.src_dir / "common" / "shared.ts", "export const s = 's';")
    _write(project.typings_dir / "node" / "node.d.ts", "declare var process: any;")

    runner = FakeToolRunner({"tsc": fake_tsc(project.root, broken={"bad.ts"})})
    stage = client_typescript_stage(project, runner=runner)

    result = asyncio.run(stage.run(RunConfig()))

    assert [record.text for record in result.diagnostics] == [
        "src/client/bad.ts(3,5): error TS7006: Parameter 'x' implicitly has an 'any' type."
    ]
    assert result.diagnostics.records[0].source_path == "src/client/bad.ts"
    assert result.ok is False and result.fatal is False

    build = project.build_dir
    assert (build / "client" / "good.js").is_file()
    assert (build / "common" / "shared.js").is_file()
    assert not (build / "client" / "bad.js").exists()
    assert not (build / "client" / "bad.js.map").exists()

    diagnostics_file = project.diagnostics_path("client-typescript")
    assert diagnostics_file.read_text(encoding="utf-8") == result.diagnostics.texts()[0]


def test_client_sources_are_staged_and_merged_with_typings(project):
    _write(project.src_dir / "client" / "app.ts")
    _write(project.typings_dir / "lib.d.ts")
    runner = FakeToolRunner({"tsc": fake_tsc(project.root)})

    asyncio.run(client_typescript_stage(project, runner=runner).run(RunConfig()))

    staged = project.staging_dir / "client" / "app.ts"
    assert staged.is_file()
    lint_args = runner.calls_for("tslint")[0]["args"]
    assert str(staged) in lint_args
    tsc_args = runner.calls_for("tsc")[0]["args"]
    assert str(staged) in tsc_args
    assert str(project.typings_dir / "lib.d.ts") in tsc_args
    assert _option(tsc_args, "--sourceRoot") == "../client"
    assert "--noImplicitAny" in tsc_args and "--declaration" not in tsc_args


def test_client_lint_paths_are_rewritten(project):
    _write(project.src_dir / "client" / "app.ts")

    def tslint(args, _input):
        staged = [arg for arg in args if arg.endswith("app.ts")][0]
        failures = [{"name": staged, "failure": "Missing semicolon", "ruleName": "semicolon",
                     "startPosition": {"line": 1, "character": 0}}]
        return output(stdout=json.dumps(failures), returncode=2, tool="tslint")

    runner = FakeToolRunner({"tslint": tslint, "tsc": fake_tsc(project.root)})
    result = asyncio.run(client_typescript_stage(project, runner=runner).run(RunConfig()))

    assert result.diagnostics.texts() == [f"{project.src_dir / 'client' / 'app.ts'}:2:1 tslint(semicolon): Missing semicolon"]
    # lint violations never block emission
    assert (project.build_dir / "client" / "app.js").is_file()


def test_server_compiles_in_place_with_declarations(project):
    _write(project.src_dir / "server" / "main.ts")
    _write(project.src_dir / "common" / "shared.ts")
    runner = FakeToolRunner({"tsc": fake_tsc(project.root)})
    stage = server_typescript_stage(project, StageOptions(declaration=True), runner)

    result = asyncio.run(stage.run(RunConfig()))

    assert stage.kind is StageKind.SERVER_TYPESCRIPT
    assert stage.descriptor.declaration_output is True
    assert result.ok and not project.staging_dir.exists()
    tsc_args = runner.calls_for("tsc")[0]["args"]
    assert str(project.src_dir / "server" / "main.ts") in tsc_args
    assert _option(tsc_args, "--sourceRoot") == "../../src/server"
    assert (project.build_dir / "server" / "main.js").is_file()
    assert (project.declarations_dir / "server" / "main.d.ts").is_file()
    assert (project.declarations_dir / "common" / "shared.d.ts").is_file()
    assert not (project.build_dir / "server" / "main.d.ts").exists()
    assert project.diagnostics_path("server-typescript").read_text(encoding="utf-8") == ""


def test_global_compiler_error_blocks_all_output(project):
    _write(project.src_dir / "server" / "main.ts")

    def tsc(args, input_text):
        fake_tsc(project.root)(args, input_text)
        return output(stdout="error TS5023: Unknown compiler option 'foo'.", returncode=1, tool="tsc")

    runner = FakeToolRunner({"tsc": tsc})
    result = asyncio.run(server_typescript_stage(project, runner=runner).run(RunConfig(fail_on_error=True)))

    assert result.fatal is True and result.exit_code == 1
    assert not (project.build_dir / "server" / "main.js").exists()


def test_custom_rules_are_handed_to_tslint(project):
    _write(project.src_dir / "server" / "main.ts")
    seen = {}

    def tslint(args, _input):
        seen.update(json.loads(Path(_option(args, "--config")).read_text(encoding="utf-8")))
        return output(stdout="[]", tool="tslint")

    runner = FakeToolRunner({"tslint": tslint, "tsc": fake_tsc(project.root)})
    options = StageOptions(rules={"semicolon": [True, "always"]})
    asyncio.run(server_typescript_stage(project, options, runner).run(RunConfig()))

    assert seen == {"rules": {"semicolon": [True, "always"]}}


def test_repeated_clean_runs_leave_an_empty_report(project):
    _write(project.src_dir / "client" / "app.ts")
    _write(project.diagnostics_path("client-typescript"), "stale problem")
    stage = client_typescript_stage(project, runner=FakeToolRunner({"tsc": fake_tsc(project.root)}))

    for _ in range(2):
        result = asyncio.run(stage.run(RunConfig(fail_on_error=True)))
        assert result.ok and not result.fatal
        assert project.diagnostics_path("client-typescript").read_text(encoding="utf-8") == ""


def test_error_in_ambient_typings_blocks_all_output(project):
    _write(project.src_dir / "server" / "main.ts")
    _write(project.typings_dir / "lib.d.ts")

    def tsc(args, input_text):
        fake_tsc(project.root)(args, input_text)
        return output(stdout="typings/lib.d.ts(1,9): error TS1005: ';' expected.", returncode=2, tool="tsc")

    runner = FakeToolRunner({"tsc": tsc})
    result = asyncio.run(server_typescript_stage(project, runner=runner).run(RunConfig()))

    assert result.diagnostics.texts() == ["typings/lib.d.ts(1,9): error TS1005: ';' expected."]
    assert result.outputs == []
    assert not (project.build_dir / "server" / "main.js").exists()
