from __future__ import annotations

from enum import Enum
from typing import Sequence, TypeVar

from cliphunt.base.clip import Clip, RankedClip

__all__ = ["SortOrder", "sort_clips", "default_focus"]

ClipLike = TypeVar("ClipLike", Clip, RankedClip)


class SortOrder(str, Enum):
    """Display orders for clip lists."""

    CHRONOLOGICAL = "chronological"
    VIRALITY = "virality"

    @classmethod
    def parse(cls, value: str | SortOrder) -> SortOrder:
        """Accept enum members, their values, and the short aliases `time` and `viral`."""
        if isinstance(value, SortOrder):
            return value
        aliases = {"time": cls.CHRONOLOGICAL, "viral": cls.VIRALITY}
        normalized = value.strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(order.value for order in cls)
            raise ValueError(f"Unknown sort order '{value}'. Supported: {supported}") from None


def sort_clips(items: Sequence[ClipLike], order: SortOrder) -> list[ClipLike]:
    """Return `items` in `order`.

    Uses `sorted`, so items with equal keys keep their relative order.
    """
    if order == SortOrder.VIRALITY:
        return sorted(items, key=lambda item: -item.virality_score)
    return sorted(items, key=lambda item: item.start_time)


def default_focus(items: Sequence[ClipLike]) -> ClipLike | None:
    """The item that gets focus when a list is (re)displayed: the first one."""
    return items[0] if items else None
