import os
from dataclasses import fields

import pytest

from laborer.config import DEFAULT_BROWSERS, Settings, load_settings
from laborer.pipeline.errors import LaborerPipelineError


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    names = [
        f"LABORER_{field.name.upper()}" for field in fields(Settings) if field.name != "root"
    ]
    for name in names:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for name in names:
        os.environ.pop(name, None)


def test_defaults_follow_the_conventional_layout(tmp_path):
    settings = load_settings(tmp_path)

    assert settings.root == tmp_path.resolve()
    assert settings.build_dir == settings.root / "build"
    assert settings.staging_dir == settings.root / "build" / "tmp"
    assert settings.public_dir == settings.root / "build" / "public"
    assert settings.diagnostics_path("client-typescript") == settings.root / "webstorm" / "errors" / "client-typescript.errors"
    assert settings.browsers == DEFAULT_BROWSERS


def test_yaml_then_environment_overrides(tmp_path, monkeypatch):
    (tmp_path / "laborer.yml").write_text(
        "build_dir: out\ndiagnostics_dir: .errors\nbrowsers:\n  - last 2 versions\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LABORER_BUILD_DIR", "dist")

    settings = load_settings(tmp_path)

    assert settings.build_dir == settings.root / "dist"
    assert settings.diagnostics_dir == settings.root / ".errors"
    assert settings.browsers == ("last 2 versions",)


def test_dotenv_file_is_loaded(tmp_path):
    (tmp_path / ".env").write_text("LABORER_BROWSERS=defaults, not dead\n", encoding="utf-8")

    settings = load_settings(tmp_path)

    assert settings.browsers == ("defaults", "not dead")


def test_empty_config_file_is_ignored(tmp_path):
    (tmp_path / "laborer.yml").write_text("", encoding="utf-8")
    assert load_settings(tmp_path) == Settings(root=tmp_path)


@pytest.mark.parametrize(
    "content, fragment",
    [
        ("build_dir: [unclosed", "Invalid YAML"),
        ("- a\n- b\n", "must contain a mapping"),
        ("output_dir: dist\n", "Unknown setting(s)"),
        ("browsers: last 2 versions\n", "browsers must be a list"),
    ],
)
def test_invalid_config_is_rejected(tmp_path, content, fragment):
    (tmp_path / "laborer.yml").write_text(content, encoding="utf-8")

    with pytest.raises(LaborerPipelineError) as excinfo:
        load_settings(tmp_path)

    assert excinfo.value.stage == "config"
    assert fragment in excinfo.value.message


def test_missing_root_is_rejected(tmp_path):
    with pytest.raises(LaborerPipelineError):
        load_settings(tmp_path / "nowhere")
