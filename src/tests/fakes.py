"""In-memory stand-ins for the video source and the analysis backend."""

from __future__ import annotations

import asyncio

from cliphunt.ai.backends import AnalysisBackend
from cliphunt.base.clip import RawClip
from cliphunt.base.exceptions import VideoSourceError
from cliphunt.base.transcription import TranscriptSegment
from cliphunt.base.video import VideoFrame, VideoSource

FAKE_JPEG = b"\xff\xd8\xff\xe0fake-jpeg\xff\xd9"
FAKE_MP3 = b"ID3fake-mp3"


def raw_clip(
    start: float,
    end: float,
    title: str = "Clip",
    virality: float = 50,
    stub: str = "",
    tags: tuple[str, ...] = ("#fun",),
) -> RawClip:
    return RawClip(
        start_time=start,
        end_time=end,
        title=title,
        summary=f"{title} summary",
        virality_score=virality,
        reasoning="Strong hook",
        tags=tags,
        transcript_stub=stub,
    )


class FakeVideoSource(VideoSource):
    def __init__(self, duration: float = 60.0, fail_on: set[str] | None = None):
        self.duration = duration
        self.fail_on = fail_on or set()
        self.captured: list[float] = []
        self.trimmed: list[tuple[float, float]] = []

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise VideoSourceError(f"{operation} failed")

    async def probe_duration(self) -> float:
        self._maybe_fail("probe")
        return self.duration

    async def capture_frame(self, timestamp: float) -> bytes:
        self._maybe_fail("capture")
        self.captured.append(timestamp)
        return FAKE_JPEG

    async def extract_audio(self) -> bytes:
        self._maybe_fail("audio")
        return FAKE_MP3

    async def trim(self, start_time: float, end_time: float) -> bytes:
        self._maybe_fail("trim")
        self.trimmed.append((start_time, end_time))
        return b"fake-mp4"


class FakeBackend(AnalysisBackend):
    """Scripted backend.

    `embeddings` maps text to vectors; unknown text gets `default_embedding`.
    `fail_embed_for` lists descriptor/query substrings whose embedding raises.
    `embed_delays` maps substrings to seconds to sleep before answering.
    """

    name = "fake"

    def __init__(
        self,
        clips: list[RawClip] | None = None,
        segments: list[TranscriptSegment] | None = None,
        embeddings: dict[str, list[float]] | None = None,
        default_embedding: list[float] | None = None,
        visual_error: Exception | None = None,
        transcription_error: Exception | None = None,
        fail_embed_for: tuple[str, ...] = (),
        embed_delays: dict[str, float] | None = None,
    ):
        self.clips = clips if clips is not None else [raw_clip(0, 10)]
        self.segments = segments or []
        self.embeddings = embeddings or {}
        self.default_embedding = default_embedding if default_embedding is not None else [1.0, 0.0]
        self.visual_error = visual_error
        self.transcription_error = transcription_error
        self.fail_embed_for = fail_embed_for
        self.embed_delays = embed_delays or {}
        self.visual_calls: list[list[VideoFrame]] = []
        self.embed_calls: list[str] = []
        self.transcribe_calls = 0

    async def analyze_visual(self, frames: list[VideoFrame], video_duration: float) -> list[RawClip]:
        self.visual_calls.append(frames)
        await asyncio.sleep(0)
        if self.visual_error is not None:
            raise self.visual_error
        return list(self.clips)

    async def transcribe_audio(self, audio: bytes) -> list[TranscriptSegment]:
        self.transcribe_calls += 1
        await asyncio.sleep(0)
        if self.transcription_error is not None:
            raise self.transcription_error
        return list(self.segments)

    async def embed(self, text: str) -> list[float]:
        self.embed_calls.append(text)
        for fragment, delay in self.embed_delays.items():
            if fragment in text:
                await asyncio.sleep(delay)
        await asyncio.sleep(0)
        for fragment in self.fail_embed_for:
            if fragment in text:
                raise RuntimeError(f"embedding unavailable for {fragment!r}")
        for fragment, vector in self.embeddings.items():
            if fragment in text:
                return vector
        return self.default_embedding
