"""Project layout and tool settings.

Settings come from three places, later ones winning:

1. built-in defaults matching the conventional project layout,
2. an optional ``laborer.yml`` in the project root,
3. ``LABORER_*`` environment variables (a ``.env`` file in the root is
   loaded first).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from laborer.pipeline.errors import LaborerPipelineError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "laborer.yml"
ENV_PREFIX = "LABORER_"
DEFAULT_BROWSERS: Tuple[str, ...] = ("> 1%", "last 3 versions", "Firefox ESR", "Opera 12.1")

_PATH_FIELDS = (
    "src_dir",
    "build_dir",
    "typings_dir",
    "diagnostics_dir",
    "tslint_config",
    "sass_lint_config",
    "node_bin",
)


@dataclass(frozen=True)
class Settings:
    root: Path
    src_dir: Path = Path("src")
    build_dir: Path = Path("build")
    typings_dir: Path = Path("typings")
    diagnostics_dir: Path = Path("webstorm/errors")
    tslint_config: Path = Path("tslint.json")
    sass_lint_config: Path = Path("src/lint/sass-lint.yml")
    node_bin: Path = Path("node_modules/.bin")
    browsers: Tuple[str, ...] = field(default=DEFAULT_BROWSERS)

    def __post_init__(self) -> None:
        root = Path(self.root).expanduser().resolve()
        object.__setattr__(self, "root", root)
        for name in _PATH_FIELDS:
            value = Path(getattr(self, name)).expanduser()
            if not value.is_absolute():
                value = root / value
            object.__setattr__(self, name, value)
        object.__setattr__(self, "browsers", tuple(self.browsers))

    @property
    def staging_dir(self) -> Path:
        """Where client sources are materialized for the compiler."""
        return self.build_dir / "tmp"

    @property
    def public_dir(self) -> Path:
        return self.build_dir / "public"

    @property
    def declarations_dir(self) -> Path:
        return self.build_dir / "declarations"

    def diagnostics_path(self, diagnostics_class: str) -> Path:
        return self.diagnostics_dir / f"{diagnostics_class}.errors"


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise LaborerPipelineError(f"Invalid YAML in {path}: {exc}", stage="config") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LaborerPipelineError(f"{path} must contain a mapping, got {type(data).__name__}", stage="config")
    return data


def _read_environment() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name in _PATH_FIELDS + ("browsers",):
        value = os.environ.get(ENV_PREFIX + name.upper())
        if not value:
            continue
        if name == "browsers":
            overrides[name] = [item.strip() for item in value.split(",") if item.strip()]
        else:
            overrides[name] = value
    return overrides


def _validate(raw: Dict[str, Any], source: str) -> Dict[str, Any]:
    known = {f.name for f in fields(Settings)} - {"root"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise LaborerPipelineError(f"Unknown setting(s) in {source}: {', '.join(unknown)}", stage="config")

    browsers = raw.get("browsers")
    if browsers is not None:
        if isinstance(browsers, str) or not all(isinstance(item, str) for item in browsers):
            raise LaborerPipelineError("browsers must be a list of strings", stage="config")
    return raw


def load_settings(root: str | Path = ".", *, config_file: Optional[Path] = None) -> Settings:
    """Build :class:`Settings` for the project rooted at ``root``."""
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise LaborerPipelineError(f"Project root does not exist: {root_path}", stage="config")

    load_dotenv(root_path / ".env")

    config_path = config_file or root_path / CONFIG_FILE_NAME
    values = _validate(_read_config_file(config_path), str(config_path))
    values.update(_validate(_read_environment(), "environment"))
    if values:
        logger.debug("Settings overrides: %s", values)

    settings = replace(Settings(root=root_path), **values)
    return settings


__all__ = ["Settings", "load_settings", "CONFIG_FILE_NAME", "DEFAULT_BROWSERS"]
