import pytest
from conftest import FakeToolRunner

from laborer.interfaces import cli
from laborer.pipeline.stages import base


@pytest.fixture
def tools(monkeypatch):
    """Every stage the CLI builds gets the same fake runner."""
    runner = FakeToolRunner()
    monkeypatch.setattr(base, "ToolRunner", lambda node_bin=None: runner)
    return runner


@pytest.fixture
def bundle_project(tmp_path):
    client = tmp_path / "build" / "client"
    client.mkdir(parents=True)
    (client / "app-entry.js").write_text("", encoding="utf-8")
    return tmp_path


def test_list_stages(capsys):
    assert cli.main(["--list"]) == 0
    assert "client-bundle-watch" in capsys.readouterr().out


def test_stage_names_are_required():
    assert cli.main([]) == 2


def test_unknown_stage_is_a_usage_error(tmp_path):
    assert cli.main(["--root", str(tmp_path), "style", "lint"]) == 2


def test_clean(tmp_path, tools):
    (tmp_path / "build" / "server").mkdir(parents=True)

    assert cli.main(["--root", str(tmp_path), "clean"]) == 0
    assert not (tmp_path / "build").exists()


def test_bundle_without_compiled_client_fails(tmp_path, tools):
    assert cli.main(["--root", str(tmp_path), "client-bundle"]) == 1
    assert (tmp_path / "webstorm" / "errors" / "bundle.errors").read_text(encoding="utf-8") == ""


@pytest.mark.parametrize("flags, expected", [([], 0), (["--fail-on-error"], 1)])
def test_fail_on_error_sets_exit_status(bundle_project, tools, flags, expected):
    tools.handlers["webpack"] = lambda args, _input: (["Error: Cannot find module 'webpack-cli'"], 1)

    assert cli.main(["--root", str(bundle_project), *flags, "client-bundle"]) == expected
    errors = (bundle_project / "webstorm" / "errors" / "bundle.errors").read_text(encoding="utf-8")
    assert errors == "Fatal webpack error: Error: Cannot find module 'webpack-cli'"


def test_failing_tests_set_exit_status(tmp_path, tools):
    suite = tmp_path / "build" / "utils" / "strings.mocha.js"
    suite.parent.mkdir(parents=True)
    suite.write_text("", encoding="utf-8")
    tools.handlers["mocha"] = lambda args, _input: (["  1 failing"], 1)

    assert cli.main(["--root", str(tmp_path), "utils-test"]) == 1


def test_options_reach_the_stages(tmp_path, tools):
    (tmp_path / "src" / "client").mkdir(parents=True)
    (tmp_path / "src" / "client" / "app.scss").write_text("", encoding="utf-8")

    assert cli.main(["--root", str(tmp_path), "--style-name", "site.css", "style"]) == 0
    assert (tmp_path / "build" / "public" / "site.css").is_file()
