from __future__ import annotations

from typing import Iterable, Iterator

from cliphunt.base.clip import Clip
from cliphunt.base.transcription import Transcript

__all__ = ["ClipIndex"]


class ClipIndex:
    """Read-only store of one video's clips and transcript.

    Clips keep the order the visual analysis produced them in. An index is never
    mutated; a new pipeline run builds a new one and swaps it in.
    """

    def __init__(self, clips: Iterable[Clip] = (), transcript: Transcript | None = None):
        self._clips: tuple[Clip, ...] = tuple(clips)
        self._transcript = transcript if transcript is not None else Transcript()
        self._by_id = {clip.id: clip for clip in self._clips}

    def __len__(self) -> int:
        return len(self._clips)

    def __iter__(self) -> Iterator[Clip]:
        return iter(self._clips)

    def __repr__(self) -> str:
        return f"ClipIndex(clips={len(self._clips)}, segments={len(self._transcript)})"

    @property
    def is_empty(self) -> bool:
        return not self._clips

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    def all(self) -> list[Clip]:
        """All clips in insertion order."""
        return list(self._clips)

    def get(self, clip_id: str) -> Clip | None:
        return self._by_id.get(clip_id)

    def clip_containing(self, time: float) -> Clip | None:
        """First clip whose `[start_time, end_time)` span contains `time`."""
        for clip in self._clips:
            if clip.contains_time(time):
                return clip
        return None
