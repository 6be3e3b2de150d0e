"""Highlight extraction pipeline: sample -> analyze -> transcribe -> embed."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from cliphunt.ai.backends import AnalysisBackend
from cliphunt.ai.config import get_section
from cliphunt.ai.exceptions import ConfigError
from cliphunt.base.clip import Clip, make_clip_id
from cliphunt.base.exceptions import EnrichmentFailure, FatalPipelineError, StaleRunError
from cliphunt.base.progress import ProgressCallback, report
from cliphunt.base.sampling import DEFAULT_BASE_INTERVAL, DEFAULT_MAX_FRAMES, SamplingPlan, sample_frames
from cliphunt.base.session import PipelineState
from cliphunt.base.transcription import Transcript
from cliphunt.base.video import DEFAULT_FRAME_WIDTH, VideoFrame, VideoSource

logger = logging.getLogger(__name__)

STAGE_SAMPLING = "Extracting frames"
STAGE_VISUAL_ANALYSIS = "Analyzing video content"
STAGE_TRANSCRIPTION = "Transcribing audio"
STAGE_EMBEDDING = "Indexing clips"

StateListener = Callable[[PipelineState], None]


@dataclass
class PipelineConfig:
    """Limits and timeouts of one pipeline run.

    Attributes:
        base_interval: Seconds between sampled frames for short videos.
        max_frames: Upper bound of frames sent to visual analysis.
        frame_width: Width in pixels sampled frames are scaled to.
        max_concurrent_embeddings: How many embedding calls may be in flight at once.
        embedding_timeout: Seconds after which a single embedding call is given up, None to wait forever.
    """

    base_interval: float = DEFAULT_BASE_INTERVAL
    max_frames: int = DEFAULT_MAX_FRAMES
    frame_width: int = DEFAULT_FRAME_WIDTH
    max_concurrent_embeddings: int = 8
    embedding_timeout: float | None = 30.0

    def __post_init__(self) -> None:
        if self.base_interval <= 0:
            raise ValueError("base_interval must be > 0")
        if self.max_frames < 1:
            raise ValueError("max_frames must be >= 1")
        if self.frame_width < 2:
            raise ValueError("frame_width must be >= 2")
        if self.max_concurrent_embeddings < 1:
            raise ValueError("max_concurrent_embeddings must be >= 1")
        if self.embedding_timeout is not None and self.embedding_timeout <= 0:
            raise ValueError("embedding_timeout must be > 0 or None")

    @classmethod
    def from_config(cls, **overrides: Any) -> PipelineConfig:
        """Build from the `[sampling]` and `[pipeline]` config tables. Explicit overrides win.

        Raises:
            ConfigError: If the configured values are invalid.
        """
        known = set(cls.__dataclass_fields__)
        values = {
            key: value
            for section in ("sampling", "pipeline")
            for key, value in get_section(section).items()
            if key in known
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return cls(**values)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid pipeline configuration: {e}") from e


@dataclass(frozen=True)
class StepStatus:
    status: str
    duration_seconds: float
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "duration_seconds": self.duration_seconds, "error": self.error}


@dataclass
class PipelineResult:
    """Output of a finished run, ready to be published.

    Attributes:
        run_id: Id of the run that produced this result.
        video_duration: Probed duration of the source in seconds.
        clips: Validated clips in visual-analysis order.
        transcript: Transcript of the audio track, empty if transcription failed.
        steps: Outcome and timing of every stage, keyed by stage name.
        failed_embeddings: Ids of clips whose embedding could not be computed.
    """

    run_id: int
    video_duration: float
    clips: list[Clip]
    transcript: Transcript
    steps: dict[str, StepStatus] = field(default_factory=dict)
    failed_embeddings: list[str] = field(default_factory=list)

    @property
    def embedded_count(self) -> int:
        return sum(1 for clip in self.clips if clip.has_embedding)


class PipelineOrchestrator:
    """Turns a video into indexed highlight clips.

    Sampling and visual analysis are required: their failures raise `FatalPipelineError`.
    Transcription and embeddings only enrich the clips: their failures are logged and the
    run continues without them.

    Every run gets an id from a monotonically increasing counter. Starting a new run makes
    all older runs stale: they stop reporting progress and end with `StaleRunError` at
    their next checkpoint instead of returning a result.

    Example:
        >>> orchestrator = PipelineOrchestrator(create_backend("gemini"))
        >>> result = asyncio.run(orchestrator.run(FFmpegVideoSource("talk.mp4")))
        >>> [clip.title for clip in result.clips]
    """

    def __init__(
        self,
        backend: AnalysisBackend,
        config: PipelineConfig | None = None,
        state_listener: StateListener | None = None,
    ):
        self.backend = backend
        self.config = config or PipelineConfig()
        self.state = PipelineState.IDLE
        self._state_listener = state_listener
        self._current_run_id = 0

    @property
    def current_run_id(self) -> int:
        return self._current_run_id

    def begin_run(self) -> int:
        """Allocate the id of a new run, superseding any run in flight."""
        self._current_run_id += 1
        return self._current_run_id

    def is_current(self, run_id: int) -> bool:
        return run_id == self._current_run_id

    def _check_current(self, run_id: int) -> None:
        if not self.is_current(run_id):
            raise StaleRunError(run_id, self._current_run_id)

    def _enter(self, run_id: int, state: PipelineState) -> None:
        if not self.is_current(run_id):
            return
        self.state = state
        if self._state_listener is not None:
            self._state_listener(state)

    async def run(
        self,
        source: VideoSource,
        progress_callback: ProgressCallback | None = None,
        run_id: int | None = None,
    ) -> PipelineResult:
        """Run all stages on `source`.

        Args:
            source: Video to analyze.
            progress_callback: Called with `(stage_name, percent)` while the run is current.
            run_id: Id from `begin_run()`. A new one is allocated when omitted.

        Raises:
            FatalPipelineError: If sampling or visual analysis fails.
            StaleRunError: If a newer run was started before this one finished.
        """
        if run_id is None:
            run_id = self.begin_run()

        def progress(stage: str, percent: int) -> None:
            if self.is_current(run_id):
                report(progress_callback, stage, percent)

        steps: dict[str, StepStatus] = {}
        run_timestamp_ms = int(time.time() * 1000)
        logger.info("Starting pipeline run %d on %s", run_id, source.name)

        try:
            self._enter(run_id, PipelineState.SAMPLING)
            duration, frames = await self._run_step(
                steps, STAGE_SAMPLING, lambda: self._sample(source, progress), run_id=run_id
            )

            self._enter(run_id, PipelineState.VISUAL_ANALYSIS)
            clips = await self._run_step(
                steps,
                STAGE_VISUAL_ANALYSIS,
                lambda: self._analyze(frames, duration, run_timestamp_ms, progress),
                run_id=run_id,
            )
        except FatalPipelineError as e:
            if self.is_current(run_id):
                logger.error("Pipeline run %d failed: %s", run_id, e)
                self._enter(run_id, PipelineState.FAILED)
            else:
                raise StaleRunError(run_id, self._current_run_id) from e
            raise

        self._enter(run_id, PipelineState.TRANSCRIBING)
        transcript = await self._run_step(
            steps, STAGE_TRANSCRIPTION, lambda: self._transcribe(source, progress), run_id=run_id, optional=True
        )
        if transcript is None:
            transcript = Transcript()

        self._enter(run_id, PipelineState.EMBEDDING)
        failed_embeddings: list[str] = []
        embedded = await self._run_step(
            steps,
            STAGE_EMBEDDING,
            lambda: self._embed(clips, failed_embeddings, progress),
            run_id=run_id,
            optional=True,
        )
        if embedded is None:
            clips = [clip.with_embedding(None) for clip in clips]
            failed_embeddings[:] = [clip.id for clip in clips]
        else:
            clips = embedded

        self._check_current(run_id)
        self._enter(run_id, PipelineState.READY)
        logger.info(
            "Pipeline run %d ready: %d clips, %d embedded, %d transcript segments",
            run_id,
            len(clips),
            len(clips) - len(failed_embeddings),
            len(transcript),
        )
        return PipelineResult(
            run_id=run_id,
            video_duration=duration,
            clips=clips,
            transcript=transcript,
            steps=steps,
            failed_embeddings=failed_embeddings,
        )

    async def _run_step(
        self,
        steps: dict[str, StepStatus],
        stage: str,
        func: Callable[[], Awaitable[Any]],
        *,
        run_id: int,
        optional: bool = False,
    ) -> Any:
        started = time.perf_counter()
        try:
            result = await func()
        except FatalPipelineError as exc:
            steps[stage] = StepStatus(status="failed", duration_seconds=time.perf_counter() - started, error=exc.reason)
            raise
        except Exception as exc:
            duration = time.perf_counter() - started
            if not optional:
                steps[stage] = StepStatus(status="failed", duration_seconds=duration, error=str(exc))
                raise FatalPipelineError(stage, str(exc)) from exc
            steps[stage] = StepStatus(status="skipped", duration_seconds=duration, error=str(exc))
            logger.warning("%s", EnrichmentFailure(f"{stage} failed, continuing without it: {exc}"))
            self._check_current(run_id)
            return None

        steps[stage] = StepStatus(status="succeeded", duration_seconds=time.perf_counter() - started)
        self._check_current(run_id)
        return result

    async def _sample(
        self, source: VideoSource, progress: Callable[[str, int], None]
    ) -> tuple[float, list[VideoFrame]]:
        progress(STAGE_SAMPLING, 0)
        duration = await source.probe_duration()
        if duration <= 0:
            raise FatalPipelineError(STAGE_SAMPLING, f"video duration must be positive, got {duration}")

        plan = SamplingPlan(duration, self.config.base_interval, self.config.max_frames)
        frames = await sample_frames(source, plan, progress, stage=STAGE_SAMPLING)
        if not frames:
            raise FatalPipelineError(STAGE_SAMPLING, "no frames could be captured")
        progress(STAGE_SAMPLING, 100)
        return duration, frames

    async def _analyze(
        self,
        frames: list[VideoFrame],
        duration: float,
        run_timestamp_ms: int,
        progress: Callable[[str, int], None],
    ) -> list[Clip]:
        progress(STAGE_VISUAL_ANALYSIS, 0)
        candidates = await self.backend.analyze_visual(frames, duration)
        if not candidates:
            raise FatalPipelineError(STAGE_VISUAL_ANALYSIS, "no clip candidates were returned")

        clips = []
        for position, raw in enumerate(candidates):
            clip = Clip.from_raw(raw, duration, make_clip_id(run_timestamp_ms, position))
            if clip is None:
                logger.debug("Dropping candidate %d (%.2f-%.2f): empty after clamping", position, raw.start_time, raw.end_time)
                continue
            clips.append(clip)

        if not clips:
            raise FatalPipelineError(STAGE_VISUAL_ANALYSIS, "no clip candidate lies within the video")
        progress(STAGE_VISUAL_ANALYSIS, 100)
        return clips

    async def _transcribe(self, source: VideoSource, progress: Callable[[str, int], None]) -> Transcript:
        progress(STAGE_TRANSCRIPTION, 0)
        audio = await source.extract_audio()
        progress(STAGE_TRANSCRIPTION, 50)
        segments = await self.backend.transcribe_audio(audio)
        transcript = Transcript.from_segments(segments)
        progress(STAGE_TRANSCRIPTION, 100)
        return transcript

    async def _embed(
        self,
        clips: list[Clip],
        failed: list[str],
        progress: Callable[[str, int], None],
    ) -> list[Clip]:
        """Embed every clip descriptor concurrently. Failed clips keep no embedding."""
        progress(STAGE_EMBEDDING, 0)
        semaphore = asyncio.Semaphore(self.config.max_concurrent_embeddings)
        completed = 0

        async def embed_one(clip: Clip) -> Clip:
            nonlocal completed
            async with semaphore:
                try:
                    vector = await asyncio.wait_for(
                        self.backend.embed(clip.descriptor), timeout=self.config.embedding_timeout
                    )
                    if not vector:
                        raise EnrichmentFailure("backend returned an empty vector")
                    return clip.with_embedding(vector)
                except Exception as exc:
                    reason = "timed out" if isinstance(exc, asyncio.TimeoutError) else str(exc)
                    logger.warning("%s", EnrichmentFailure(f"Embedding failed for clip {clip.id}: {reason}"))
                    failed.append(clip.id)
                    return clip.with_embedding(None)
                finally:
                    completed += 1
                    progress(STAGE_EMBEDDING, round(completed / len(clips) * 100))

        # gather keeps input order, so clips stay in visual-analysis order.
        enriched = await asyncio.gather(*(embed_one(clip) for clip in clips))
        failed.sort(key=[clip.id for clip in clips].index)
        progress(STAGE_EMBEDDING, 100)
        return list(enriched)
