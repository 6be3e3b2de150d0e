"""Clip data model: raw backend candidates, validated clips and search results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Sequence

__all__ = ["RawClip", "Clip", "RankedClip", "make_clip_id"]

REQUIRED_RAW_FIELDS: tuple[str, ...] = ("startTime", "endTime", "title", "summary", "viralityScore", "tags")

# Backends are prompted for camelCase keys; snake_case is accepted as well.
_FIELD_ALIASES: dict[str, str] = {
    "startTime": "start_time",
    "endTime": "end_time",
    "title": "title",
    "summary": "summary",
    "viralityScore": "virality_score",
    "reasoning": "reasoning",
    "tags": "tags",
    "transcriptStub": "transcript_stub",
}


def make_clip_id(run_timestamp_ms: int, position: int) -> str:
    """Build a clip id that is stable within one pipeline run."""
    return f"clip-{run_timestamp_ms}-{position}"


@dataclass(frozen=True)
class RawClip:
    """Clip candidate as returned by the visual analysis backend, before validation.

    Attributes:
        start_time: Proposed start in seconds, may lie outside the video.
        end_time: Proposed end in seconds, may lie outside the video.
        title: Catchy title for the clip.
        summary: What happens in the clip.
        virality_score: Predicted engagement score, nominally 0-100.
        reasoning: Why the backend thinks this clip works.
        tags: Keywords or hashtags, in backend order.
        transcript_stub: Spoken text or caption estimated for the clip.
    """

    start_time: float
    end_time: float
    title: str
    summary: str
    virality_score: float
    reasoning: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    transcript_stub: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawClip:
        """Parse one candidate object from a backend response.

        Raises:
            ValueError: If the object is missing required fields or has values of the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Clip candidate must be an object, got {type(data).__name__}")

        values: dict[str, Any] = {}
        for camel, snake in _FIELD_ALIASES.items():
            if camel in data:
                values[snake] = data[camel]
            elif snake in data:
                values[snake] = data[snake]

        missing = [name for name in REQUIRED_RAW_FIELDS if _FIELD_ALIASES[name] not in values]
        if missing:
            raise ValueError(f"Clip candidate is missing fields: {missing}")

        tags = values["tags"]
        if isinstance(tags, str) or not isinstance(tags, (list, tuple)):
            raise ValueError(f"Clip candidate tags must be a list, got {type(tags).__name__}")

        try:
            numbers = {name: float(values[name]) for name in ("start_time", "end_time", "virality_score")}
        except (TypeError, ValueError) as e:
            raise ValueError(f"Clip candidate has invalid values: {e}") from e
        non_finite = [name for name, value in numbers.items() if not math.isfinite(value)]
        if non_finite:
            raise ValueError(f"Clip candidate has non-finite values: {non_finite}")

        try:
            return cls(
                start_time=numbers["start_time"],
                end_time=numbers["end_time"],
                title=str(values["title"]),
                summary=str(values["summary"]),
                virality_score=numbers["virality_score"],
                reasoning=str(values.get("reasoning") or ""),
                tags=tuple(str(tag) for tag in tags),
                transcript_stub=str(values.get("transcript_stub") or ""),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Clip candidate has invalid values: {e}") from e


@dataclass(frozen=True)
class Clip:
    """A time-bounded highlight segment of the source video.

    Invariant: `0 <= start_time < end_time <= video duration`. Clips are created by
    `Clip.from_raw`, enriched once with an embedding and never mutated afterwards.
    """

    id: str
    start_time: float
    end_time: float
    title: str
    summary: str
    virality_score: int
    reasoning: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    transcript_stub: str = ""
    embedding: tuple[float, ...] | None = None

    @classmethod
    def from_raw(cls, raw: RawClip, video_duration: float, clip_id: str) -> Clip | None:
        """Clamp a raw candidate to the video and validate it.

        Returns:
            The clip, or None when the candidate is empty after clamping or its times are not finite.
        """
        if not (math.isfinite(raw.start_time) and math.isfinite(raw.end_time)):
            return None
        start_time = max(0.0, raw.start_time)
        end_time = min(video_duration, raw.end_time)
        if start_time >= end_time:
            return None

        return cls(
            id=clip_id,
            start_time=start_time,
            end_time=end_time,
            title=raw.title,
            summary=raw.summary,
            virality_score=int(round(min(100.0, max(0.0, raw.virality_score)))),
            reasoning=raw.reasoning,
            tags=tuple(raw.tags),
            transcript_stub=raw.transcript_stub,
        )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def descriptor(self) -> str:
        """Text that represents the clip for embedding."""
        return f"{self.title} {self.summary} {' '.join(self.tags)} {self.reasoning}"

    def contains_time(self, time: float) -> bool:
        return self.start_time <= time < self.end_time

    def stub_contains(self, query: str) -> bool:
        """Case-insensitive substring match against the transcript stub."""
        return query.lower() in self.transcript_stub.lower()

    def with_embedding(self, embedding: Sequence[float] | None) -> Clip:
        """Return a copy carrying `embedding`. Empty vectors are stored as absent."""
        vector = tuple(float(v) for v in embedding) if embedding else None
        return replace(self, embedding=vector)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "title": self.title,
            "summary": self.summary,
            "virality_score": self.virality_score,
            "reasoning": self.reasoning,
            "tags": list(self.tags),
            "transcript_stub": self.transcript_stub,
            "embedding": list(self.embedding) if self.embedding is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Clip:
        embedding = data.get("embedding")
        return cls(
            id=data["id"],
            start_time=float(data["start_time"]),
            end_time=float(data["end_time"]),
            title=data["title"],
            summary=data["summary"],
            virality_score=int(data["virality_score"]),
            reasoning=data.get("reasoning", ""),
            tags=tuple(data.get("tags", ())),
            transcript_stub=data.get("transcript_stub", ""),
            embedding=tuple(embedding) if embedding else None,
        )


@dataclass(frozen=True)
class RankedClip:
    """A clip paired with the score it got for one search evaluation."""

    clip: Clip
    score: float = 0.0

    @property
    def start_time(self) -> float:
        return self.clip.start_time

    @property
    def virality_score(self) -> int:
        return self.clip.virality_score

    def to_dict(self) -> dict[str, Any]:
        data = self.clip.to_dict()
        data.pop("embedding")
        data["score"] = self.score
        return data
