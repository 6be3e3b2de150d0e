from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator


@dataclass(frozen=True)
class TranscriptSegment:
    start_time: float
    end_time: float
    text: str

    def contains(self, query: str) -> bool:
        """Case-insensitive substring match against the segment text."""
        return query.lower() in self.text.lower()

    def to_dict(self) -> dict[str, Any]:
        return {"start_time": self.start_time, "end_time": self.end_time, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptSegment:
        return cls(
            start_time=float(data["start_time"]),
            end_time=float(data["end_time"]),
            text=str(data["text"]),
        )


@dataclass(frozen=True)
class Transcript:
    segments: tuple[TranscriptSegment, ...] = field(default_factory=tuple)

    @classmethod
    def from_segments(cls, segments: list[TranscriptSegment] | tuple[TranscriptSegment, ...]) -> Transcript:
        """Build a transcript ordered by segment start time (stable for equal starts)."""
        return cls(segments=tuple(sorted(segments, key=lambda segment: segment.start_time)))

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[TranscriptSegment]:
        return iter(self.segments)

    def __bool__(self) -> bool:
        return bool(self.segments)

    def matching(self, query: str) -> list[TranscriptSegment]:
        """Return segments whose text contains `query`, case-insensitively."""
        if not query:
            return []
        return [segment for segment in self.segments if segment.contains(query)]

    def segment_at(self, time: float) -> TranscriptSegment | None:
        """Return the segment being spoken at `time`, if any."""
        for segment in self.segments:
            if segment.start_time <= time < segment.end_time:
                return segment
        return None

    @property
    def text(self) -> str:
        return " ".join(segment.text.strip() for segment in self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {"segments": [segment.to_dict() for segment in self.segments]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transcript:
        return cls.from_segments([TranscriptSegment.from_dict(s) for s in data.get("segments", [])])
