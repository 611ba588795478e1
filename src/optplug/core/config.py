"""Configuration: env, paths, sources, filters."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PROJECT_DIR_NAME = ".optplug"


def _default_home() -> Path:
    return Path.home() / PROJECT_DIR_NAME


@dataclass
class Config:
    home: Path = field(default_factory=_default_home)
    cwd: Path = field(default_factory=Path.cwd)
    plugins_dir_override: Path | None = None
    staging_dir_override: Path | None = None
    sources: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    verbose: bool = False

    @property
    def plugins_dir(self) -> Path:
        return self.plugins_dir_override or self.home / "plugins"

    @property
    def staging_dir(self) -> Path:
        return self.staging_dir_override or self.home / "optional-plugins"

    @property
    def project_dir(self) -> Path | None:
        d = self.cwd / PROJECT_DIR_NAME
        return d if d.is_dir() else None


def _str_list(value: object) -> list[str] | None:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, str) and v]
    return None


def _apply_settings(config: Config, path: Path) -> None:
    """Apply a single settings.json file to config."""
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return
    if not isinstance(data, dict):
        return
    base = path.parent
    if isinstance(data.get("pluginsDir"), str):
        config.plugins_dir_override = base / Path(data["pluginsDir"]).expanduser()
    if isinstance(data.get("stagingDir"), str):
        config.staging_dir_override = base / Path(data["stagingDir"]).expanduser()
    sources = _str_list(data.get("sources"))
    for s in sources or []:
        # relative paths are relative to the settings file
        if "://" not in s:
            s = str(base / Path(s).expanduser())
        if s not in config.sources:
            config.sources.append(s)
    for key in ("include", "exclude"):
        patterns = _str_list(data.get(key))
        if patterns is not None:
            getattr(config, key).extend(patterns)


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_config(
    home: Path | None = None,
    plugins_dir: Path | None = None,
    verbose: bool = False,
) -> Config:
    """Load config with priority: CLI args > env > .env > settings.json > defaults."""
    load_dotenv()

    config = Config()
    if env_home := os.getenv("OPTPLUG_HOME"):
        config.home = Path(env_home).expanduser()
    if home:
        config.home = Path(home)

    _apply_settings(config, config.home / "settings.json")
    if config.project_dir is not None:
        _apply_settings(config, config.project_dir / "settings.json")

    if env_plugins := os.getenv("OPTPLUG_PLUGINS_DIR"):
        config.plugins_dir_override = Path(env_plugins).expanduser()
    if env_staging := os.getenv("OPTPLUG_STAGING_DIR"):
        config.staging_dir_override = Path(env_staging).expanduser()
    config.verbose = verbose or _env_flag(os.getenv("OPTPLUG_VERBOSE"))

    if plugins_dir:
        config.plugins_dir_override = Path(plugins_dir)

    return config
