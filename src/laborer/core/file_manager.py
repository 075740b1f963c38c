"""
Core File Manager Module

File selection, staging and output-tree operations used by the pipeline stages.
"""

import re
import shutil
from pathlib import Path
from typing import Callable, Iterable, List, Sequence, Set, Tuple

from laborer.pipeline.errors import LaborerPipelineError

_BRACES = re.compile(r"\{([^{}]*)\}")


class FileManager:
    """Core file management functionality."""

    @staticmethod
    def expand_braces(pattern: str) -> List[str]:
        """
        Expand ``{a,b}`` alternatives the way shell-style globs do.

        Args:
            pattern: Glob pattern, possibly containing brace groups

        Returns:
            Plain glob patterns, in alternative order
        """
        match = _BRACES.search(pattern)
        if not match:
            return [pattern]

        expanded: List[str] = []
        head, tail = pattern[:match.start()], pattern[match.end():]
        for option in match.group(1).split(","):
            expanded.extend(FileManager.expand_braces(f"{head}{option}{tail}"))
        return expanded

    @staticmethod
    def select_files(base_dir: Path, selectors: Sequence[str]) -> List[Path]:
        """
        Resolve glob selectors relative to a base directory.

        Args:
            base_dir: Directory the selectors are relative to
            selectors: Glob patterns (``**`` and ``{a,b}`` supported)

        Returns:
            Matching files, sorted per selector, duplicates removed
        """
        selected: List[Path] = []
        seen: Set[Path] = set()

        if not base_dir.is_dir():
            return selected

        for selector in selectors:
            for pattern in FileManager.expand_braces(selector):
                for file_path in sorted(base_dir.glob(pattern)):
                    if file_path.is_file() and file_path not in seen:
                        seen.add(file_path)
                        selected.append(file_path)
        return selected

    @staticmethod
    def stage_files(files: Iterable[Path], source_base: Path, staging_base: Path) -> List[Path]:
        """
        Copy files into a staging tree, keeping their layout below ``source_base``.

        Args:
            files: Files under ``source_base``
            source_base: Logical root of the sources
            staging_base: Root of the staging tree

        Returns:
            Staged file paths, in input order

        Raises:
            LaborerPipelineError: If a file lies outside ``source_base`` or cannot be copied
        """
        staged: List[Path] = []
        for file_path in files:
            try:
                relative = file_path.relative_to(source_base)
            except ValueError as exc:
                raise LaborerPipelineError(
                    f"{file_path} is not inside {source_base}", stage="staging"
                ) from exc

            target = staging_base / relative
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(file_path, target)
            except OSError as exc:
                raise LaborerPipelineError(f"Failed to stage {file_path}: {exc}", stage="staging") from exc
            staged.append(target)
        return staged

    @staticmethod
    def copy_outputs(pairs: Iterable[Tuple[Path, Path]]) -> List[Path]:
        """
        Copy generated files to their destinations.

        Args:
            pairs: ``(generated_file, destination)`` tuples

        Returns:
            Destination paths written
        """
        written: List[Path] = []
        for generated, destination in pairs:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(generated, destination)
            written.append(destination)
        return written

    @staticmethod
    def remove_tree(directory: Path) -> bool:
        """
        Delete a directory tree.

        Args:
            directory: Tree to delete

        Returns:
            True if something was deleted, False if it was already absent
        """
        if not directory.exists():
            return False
        if directory.is_file() or directory.is_symlink():
            directory.unlink()
        else:
            shutil.rmtree(directory)
        return True


def make_path_fixer(staged_base: Path, logical_base: Path, root: Path) -> Callable[[str], str]:
    """Build a rewriter that maps staged paths in tool output back to source paths.

    Tools print either absolute paths or paths relative to the project root, so
    both spellings are rewritten.
    """
    replacements = [(f"{staged_base.as_posix()}/", f"{logical_base.as_posix()}/")]
    if staged_base.is_relative_to(root) and logical_base.is_relative_to(root):
        replacements.append(
            (
                f"{staged_base.relative_to(root).as_posix()}/",
                f"{logical_base.relative_to(root).as_posix()}/",
            )
        )

    def fix_path(text: str) -> str:
        for old, new in replacements:
            text = text.replace(old, new)
        return text

    return fix_path


__all__ = ["FileManager", "make_path_fixer"]
