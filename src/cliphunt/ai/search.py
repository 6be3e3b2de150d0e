"""Hybrid clip search: embedding similarity fused with transcript keyword matches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from cliphunt.ai.config import get_section
from cliphunt.ai.exceptions import ConfigError
from cliphunt.base.clip import Clip, RankedClip
from cliphunt.base.sorting import SortOrder, sort_clips
from cliphunt.base.transcription import Transcript, TranscriptSegment

logger = logging.getLogger(__name__)

DEFAULT_OVERLAP_BOOST = 0.5
DEFAULT_RELEVANCE_THRESHOLD = 0.3


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine of the angle between `a` and `b`.

    Returns 0.0 instead of raising when either vector is missing or empty, has zero
    norm, or the lengths differ.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0
    return float(np.dot(va, vb) / norm)


def overlaps(clip: Clip, segment: TranscriptSegment) -> bool:
    """Whether a transcript segment touches the clip's time span."""
    starts_inside = clip.start_time <= segment.start_time < clip.end_time
    ends_inside = clip.start_time < segment.end_time <= clip.end_time
    covers_clip = segment.start_time <= clip.start_time and clip.end_time <= segment.end_time
    return starts_inside or ends_inside or covers_clip


@dataclass
class SearchConfig:
    """Scoring constants of the hybrid ranker.

    Attributes:
        overlap_boost: Added to the similarity of clips whose time span overlaps a
            transcript segment containing the query, or whose stub contains it.
        relevance_threshold: Clips must score strictly above this to be kept, unless
            their stub contains the query.
        debounce_seconds: Delay before a session search embeds its query, 0 to disable.
    """

    overlap_boost: float = DEFAULT_OVERLAP_BOOST
    relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD
    debounce_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.overlap_boost < 0:
            raise ValueError("overlap_boost must be >= 0")
        if self.debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")

    @classmethod
    def from_config(cls, **overrides: Any) -> SearchConfig:
        """Build from the `[search]` config table. Explicit overrides win.

        Raises:
            ConfigError: If the configured values are invalid.
        """
        known = set(cls.__dataclass_fields__)
        values = {key: value for key, value in get_section("search").items() if key in known}
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls(**values)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid search configuration: {e}") from e


class HybridRanker:
    """Scores clips against a free-text query.

    A clip's score is the cosine similarity of its embedding to the query embedding, plus
    `overlap_boost` when the query is spoken during the clip (per the transcript) or appears
    in its transcript stub. Clips scoring above `relevance_threshold` are kept, as are clips
    whose stub contains the query regardless of score.

    Without a query embedding, similarity counts as 0 and only the lexical signals decide.
    """

    def __init__(self, config: SearchConfig | None = None):
        self.config = config or SearchConfig()

    def score(
        self,
        query: str,
        clip: Clip,
        matching_segments: Sequence[TranscriptSegment],
        query_embedding: Sequence[float] | None,
    ) -> tuple[float, bool]:
        """Score one clip. Returns `(score, stub_match)`."""
        score = cosine_similarity(clip.embedding, query_embedding) if query_embedding is not None else 0.0
        stub_match = clip.stub_contains(query)
        if stub_match or any(overlaps(clip, segment) for segment in matching_segments):
            score += self.config.overlap_boost
        return score, stub_match

    def rank(
        self,
        query: str,
        clips: Sequence[Clip],
        transcript: Transcript,
        query_embedding: Sequence[float] | None,
        sort_order: SortOrder = SortOrder.CHRONOLOGICAL,
    ) -> list[RankedClip]:
        """Filter and order `clips` for `query`.

        An empty or whitespace query keeps every clip with score 0.
        """
        if not query.strip():
            return sort_clips([RankedClip(clip) for clip in clips], sort_order)

        matching_segments = transcript.matching(query)
        retained = []
        for clip in clips:
            score, stub_match = self.score(query, clip, matching_segments, query_embedding)
            if score > self.config.relevance_threshold or stub_match:
                retained.append(RankedClip(clip, score))

        logger.debug(
            "Query %r kept %d of %d clips (%d matching transcript segments, %s)",
            query,
            len(retained),
            len(clips),
            len(matching_segments),
            "hybrid" if query_embedding is not None else "lexical only",
        )
        return sort_clips(retained, sort_order)
