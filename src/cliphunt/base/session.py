from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from cliphunt.base.clip import Clip, RankedClip
from cliphunt.base.index import ClipIndex
from cliphunt.base.sorting import SortOrder, default_focus, sort_clips
from cliphunt.base.transcription import Transcript

__all__ = ["PipelineState", "SessionState"]


class PipelineState(str, Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    VISUAL_ANALYSIS = "visual_analysis"
    TRANSCRIBING = "transcribing"
    EMBEDDING = "embedding"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self not in {PipelineState.IDLE, PipelineState.READY, PipelineState.FAILED}


@dataclass
class SessionState:
    """Everything known about the currently loaded video.

    Attributes:
        video_duration: Duration of the loaded video in seconds, 0 when nothing is loaded.
        index: Clips and transcript of the last successful run.
        sort_order: Order applied to `results`.
        last_query: Query that produced `results`, empty for the unfiltered list.
        results: Clips currently displayed, already sorted.
        active_clip: Clip in focus, the first of `results` unless picked explicitly.
        state: Where the pipeline is for this session.
        error: Reason of the last fatal failure, if any.
    """

    video_duration: float = 0.0
    index: ClipIndex = field(default_factory=ClipIndex)
    sort_order: SortOrder = SortOrder.CHRONOLOGICAL
    last_query: str = ""
    results: list[RankedClip] = field(default_factory=list)
    active_clip: Clip | None = None
    state: PipelineState = PipelineState.IDLE
    error: str | None = None

    @property
    def clips(self) -> list[Clip]:
        return self.index.all()

    @property
    def transcript(self) -> Transcript:
        return self.index.transcript

    def reset(self) -> None:
        """Drop all data of the previous video. The sort order is a user preference and survives."""
        self.video_duration = 0.0
        self.index = ClipIndex()
        self.last_query = ""
        self.results = []
        self.active_clip = None
        self.state = PipelineState.IDLE
        self.error = None

    def publish(self, video_duration: float, clips: list[Clip], transcript: Transcript) -> None:
        """Swap in the output of a finished run in one step."""
        index = ClipIndex(clips, transcript)
        results = sort_clips([RankedClip(clip) for clip in index], self.sort_order)
        focus = default_focus(results)

        self.video_duration = video_duration
        self.index = index
        self.last_query = ""
        self.results = results
        self.active_clip = focus.clip if focus else None
        self.state = PipelineState.READY
        self.error = None

    def fail(self, reason: str) -> None:
        """Record a fatal failure. No data of the failed attempt is kept."""
        self.reset()
        self.state = PipelineState.FAILED
        self.error = reason

    def show(self, results: list[RankedClip], query: str) -> None:
        """Display `results` for `query` and focus the first one."""
        self.results = sort_clips(results, self.sort_order)
        self.last_query = query
        focus = default_focus(self.results)
        self.active_clip = focus.clip if focus else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "video_duration": self.video_duration,
            "state": self.state.value,
            "sort_order": self.sort_order.value,
            "last_query": self.last_query,
            "clips": [clip.to_dict() for clip in self.index],
            "transcript": self.transcript.to_dict(),
            "results": [{"id": r.clip.id, "score": r.score} for r in self.results],
            "active_clip": self.active_clip.id if self.active_clip else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionState:
        index = ClipIndex(
            [Clip.from_dict(c) for c in data.get("clips", [])],
            Transcript.from_dict(data.get("transcript", {})),
        )
        results = []
        for entry in data.get("results", []):
            clip = index.get(entry["id"])
            if clip is not None:
                results.append(RankedClip(clip, float(entry.get("score", 0.0))))
        active_id = data.get("active_clip")
        return cls(
            video_duration=float(data.get("video_duration", 0.0)),
            index=index,
            sort_order=SortOrder.parse(data.get("sort_order", SortOrder.CHRONOLOGICAL)),
            last_query=data.get("last_query", ""),
            results=results,
            active_clip=index.get(active_id) if active_id else None,
            state=PipelineState(data.get("state", PipelineState.IDLE.value)),
            error=data.get("error"),
        )

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: str | Path, *, indent: int | None = 2) -> None:
        Path(path).write_text(self.to_json(indent=indent), encoding="utf-8")

    @classmethod
    def load(cls, path: str | Path) -> SessionState:
        return cls.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
