import asyncio

import pytest

from laborer.core.file_manager import FileManager
from laborer.pipeline.errors import LaborerPipelineError
from laborer.pipeline.run_mode import RunConfig
from laborer.pipeline.stages.clean import CleanStage


def test_removes_build_tree(project, fake_runner):
    nested = project.build_dir / "client" / "deep"
    nested.mkdir(parents=True)
    (nested / "a.js").write_text("", encoding="utf-8")

    result = asyncio.run(CleanStage(project, runner=fake_runner).run(RunConfig()))

    assert result.ok and not result.skipped
    assert not project.build_dir.exists()
    assert (project.src_dir / "client").is_dir()


def test_absent_build_tree_is_fine(project, fake_runner):
    result = asyncio.run(CleanStage(project, runner=fake_runner).run(RunConfig()))

    assert result.ok and result.skipped


def test_delete_failure_surfaces(project, fake_runner, monkeypatch):
    project.build_dir.mkdir()

    def refuse(directory):
        raise PermissionError(13, "Permission denied", str(directory))

    monkeypatch.setattr(FileManager, "remove_tree", staticmethod(refuse))

    with pytest.raises(LaborerPipelineError) as excinfo:
        asyncio.run(CleanStage(project, runner=fake_runner).run(RunConfig()))

    assert excinfo.value.stage == "clean"
    assert isinstance(excinfo.value.__cause__, PermissionError)
