from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from tqdm import tqdm

__all__ = [
    "ProgressCallback",
    "configure",
    "set_progress",
    "get_config",
    "progress_iter",
    "report",
]

T = TypeVar("T")

# Called with (stage name, percent 0-100).
ProgressCallback = Callable[[str, int], None]


@dataclass
class _BaseConfig:
    progress: bool = False


_CONFIG = _BaseConfig()


def configure(*, progress: bool | None = None) -> None:
    """Configure base module progress behavior."""
    if progress is not None:
        _CONFIG.progress = bool(progress)


def set_progress(value: bool) -> None:
    """Enable or disable progress bars in base operations."""
    _CONFIG.progress = bool(value)


def get_config() -> _BaseConfig:
    """Return the current base configuration."""
    return _CONFIG


def progress_iter(
    iterable: Iterable[T],
    *,
    desc: str | None = None,
    total: int | None = None,
) -> Iterable[T]:
    """Return an iterator with an optional progress bar."""
    if _CONFIG.progress:
        return tqdm(iterable, desc=desc, total=total)
    return iterable


def report(callback: ProgressCallback | None, stage: str, percent: int) -> None:
    """Forward a progress update to `callback` if one was given."""
    if callback is not None:
        callback(stage, percent)
