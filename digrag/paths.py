"""Path helpers for index directories and XDG locations."""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "digrag"
CONFIG_FILE_NAME = "config.toml"


def expand_home(path: Path | str) -> Path:
    """Expand a leading ``~`` in ``path``."""

    return Path(path).expanduser()


def resolve_path(path: Path | str, *, base_dir: Path | str | None = None) -> Path:
    """Return an absolute path, resolving relative paths against ``base_dir``.

    ``base_dir`` defaults to the current working directory. The target does
    not need to exist.
    """

    expanded = expand_home(path)
    if not expanded.is_absolute():
        base = Path(base_dir) if base_dir is not None else Path.cwd()
        expanded = base / expanded
    return expanded.resolve()


def _xdg_dir(env_var: str, fallback: str) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser() / APP_NAME
    return Path.home() / fallback / APP_NAME


def get_config_dir() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    return _xdg_dir("XDG_DATA_HOME", os.path.join(".local", "share"))


def get_cache_dir() -> Path:
    return _xdg_dir("XDG_CACHE_HOME", ".cache")


def get_default_config_path() -> Path:
    """Return the config file location, honouring ``DIGRAG_CONFIG_FILE``."""

    override = os.environ.get("DIGRAG_CONFIG_FILE")
    if override:
        return expand_home(override)
    return get_config_dir() / CONFIG_FILE_NAME


__all__ = [
    "expand_home",
    "get_cache_dir",
    "get_config_dir",
    "get_data_dir",
    "get_default_config_path",
    "resolve_path",
]
