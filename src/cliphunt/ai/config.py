"""Configuration loader for cliphunt.

Settings come from `cliphunt.toml` in the working directory, or from the
`[tool.cliphunt]` table of `pyproject.toml` when there is no `cliphunt.toml`.
"""

from __future__ import annotations

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Any

import tomllib

DEFAULT_BACKENDS: dict[str, str] = {
    "analysis": "gemini",
}

# (file name, keys leading to the cliphunt table), in lookup order.
CONFIG_SOURCES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("cliphunt.toml", ()),
    ("pyproject.toml", ("tool", "cliphunt")),
)


def _table(data: Any, *keys: str) -> dict[str, Any]:
    """Walk nested TOML tables. Missing keys and non-table values give an empty dict."""
    for key in keys:
        data = data.get(key) if isinstance(data, dict) else None
    return data if isinstance(data, dict) else {}


@lru_cache(maxsize=1)
def get_config() -> dict[str, Any]:
    """The cliphunt configuration of the working directory, read once and cached."""
    cwd = Path.cwd()
    for filename, keys in CONFIG_SOURCES:
        path = cwd / filename
        if not path.exists():
            continue
        try:
            with open(path, "rb") as f:
                return _table(tomllib.load(f), *keys)
        except tomllib.TOMLDecodeError as e:
            warnings.warn(f"Invalid TOML in config file {path}: {e}", RuntimeWarning)
        except OSError as e:
            warnings.warn(f"Cannot read config file {path}: {e}", RuntimeWarning)
        return {}
    return {}


def get_section(name: str) -> dict[str, Any]:
    """One top-level table of the configuration, e.g. `search` or `pipeline`."""
    return _table(get_config(), name)


def get_default_backend(task: str) -> str:
    """Backend for `task` from `[ai.defaults]`, falling back to `DEFAULT_BACKENDS`."""
    configured = _table(get_config(), "ai", "defaults").get(task)
    if configured:
        return str(configured)
    return DEFAULT_BACKENDS.get(task, "gemini")


def get_model_overrides(backend: str) -> dict[str, str]:
    """Model names configured for a backend under `[ai.models]`."""
    return dict(_table(get_config(), "ai", "models", backend))


def clear_config_cache() -> None:
    """Forget the cached configuration, e.g. after changing directory in tests."""
    get_config.cache_clear()
