"""Caller-facing session: runs the pipeline, owns the published clips and answers searches."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Union

from cliphunt.ai.backends import AnalysisBackend, AnalysisBackendName, create_backend
from cliphunt.ai.pipeline import PipelineConfig, PipelineOrchestrator, PipelineResult
from cliphunt.ai.search import HybridRanker, SearchConfig
from cliphunt.base.clip import Clip, RankedClip
from cliphunt.base.exceptions import ExportFailure, FatalPipelineError, SearchBackendFailure, StaleRunError
from cliphunt.base.session import PipelineState, SessionState
from cliphunt.base.sorting import SortOrder
from cliphunt.base.transcription import Transcript
from cliphunt.base.video import VideoSource, export_clip

logger = logging.getLogger(__name__)

__all__ = ["ClipSession", "ProgressEvent", "ReadyEvent", "FailedEvent", "PipelineEvent"]


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    percent: int


@dataclass(frozen=True)
class ReadyEvent:
    clips: list[Clip]
    transcript: Transcript
    result: PipelineResult


@dataclass(frozen=True)
class FailedEvent:
    reason: str
    stage: str | None = None


PipelineEvent = Union[ProgressEvent, ReadyEvent, FailedEvent]


class ClipSession:
    """One loaded video: its clips, transcript, current results and focus.

    Only the newest pipeline run may publish, and only the newest search may change the
    displayed results. Everything the session shows lives in `state`.

    Example:
        >>> session = ClipSession.create(backend="gemini")
        >>> async def main():
        ...     async for event in session.start_pipeline(FFmpegVideoSource("talk.mp4")):
        ...         print(event)
        ...     return await session.search("launch")
        >>> results = asyncio.run(main())
    """

    def __init__(
        self,
        backend: AnalysisBackend,
        pipeline_config: PipelineConfig | None = None,
        search_config: SearchConfig | None = None,
        sort_order: SortOrder | str = SortOrder.CHRONOLOGICAL,
    ):
        self.backend = backend
        self.state = SessionState(sort_order=SortOrder.parse(sort_order))
        self.orchestrator = PipelineOrchestrator(backend, pipeline_config, state_listener=self._on_state)
        self.ranker = HybridRanker(search_config)
        self.source: VideoSource | None = None
        self._query_token = 0

    @classmethod
    def create(
        cls,
        backend: AnalysisBackendName | None = None,
        api_key: str | None = None,
        sort_order: SortOrder | str = SortOrder.CHRONOLOGICAL,
    ) -> ClipSession:
        """Build a session with a backend and limits resolved from the config file."""
        return cls(
            create_backend(backend, api_key=api_key),
            pipeline_config=PipelineConfig.from_config(),
            search_config=SearchConfig.from_config(),
            sort_order=sort_order,
        )

    @property
    def results(self) -> list[RankedClip]:
        return self.state.results

    @property
    def clips(self) -> list[Clip]:
        return self.state.clips

    @property
    def transcript(self) -> Transcript:
        return self.state.transcript

    @property
    def active_clip(self) -> Clip | None:
        return self.state.active_clip

    def _on_state(self, state: PipelineState) -> None:
        self.state.state = state

    def start_pipeline(self, source: VideoSource) -> AsyncIterator[PipelineEvent]:
        """Load `source` and analyze it.

        The previous video's data is dropped and any run in flight is superseded right away.
        The returned iterator yields `ProgressEvent`s and ends with a `ReadyEvent` or a
        `FailedEvent`. An iterator whose run gets superseded ends without a terminal event.
        """
        run_id = self.orchestrator.begin_run()
        self.state.reset()
        self.source = source
        self._query_token += 1
        return self._run_events(source, run_id)

    async def _run_events(self, source: VideoSource, run_id: int) -> AsyncIterator[PipelineEvent]:
        queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()

        def on_progress(stage: str, percent: int) -> None:
            queue.put_nowait(ProgressEvent(stage, percent))

        async def drive() -> None:
            try:
                result = await self.orchestrator.run(source, on_progress, run_id=run_id)
                if self.orchestrator.is_current(run_id):
                    self.state.publish(result.video_duration, result.clips, result.transcript)
                    queue.put_nowait(ReadyEvent(clips=self.state.clips, transcript=result.transcript, result=result))
            except StaleRunError:
                logger.info("Discarding results of superseded run %d", run_id)
            except FatalPipelineError as e:
                self.state.fail(str(e))
                queue.put_nowait(FailedEvent(reason=str(e), stage=e.stage))
            finally:
                # Wakes the consumer when the run ends without a terminal event.
                queue.put_nowait(None)

        task = asyncio.create_task(drive())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
                if isinstance(event, (ReadyEvent, FailedEvent)):
                    return
        finally:
            if not task.done():
                task.cancel()
                if self.orchestrator.is_current(run_id):
                    # Abandoned mid-run: go back to IDLE so the video can be analyzed again.
                    logger.info("Pipeline run %d abandoned by the caller", run_id)
                    self.orchestrator.state = PipelineState.IDLE
                    self.state.reset()
            else:
                # Surface unexpected errors from the driver instead of losing them.
                task.result()

    async def run_pipeline(self, source: VideoSource) -> ReadyEvent | FailedEvent | None:
        """Run the pipeline to completion. Returns None when the run was superseded."""
        terminal: ReadyEvent | FailedEvent | None = None
        async for event in self.start_pipeline(source):
            if isinstance(event, (ReadyEvent, FailedEvent)):
                terminal = event
        return terminal

    async def search(self, query: str) -> list[RankedClip]:
        """Rank the loaded clips for `query`.

        Results are shown in the session only if no newer search started meanwhile; the
        ranked list is returned either way. If the query can't be embedded, ranking falls
        back to transcript and stub matches.
        """
        self._query_token += 1
        token = self._query_token
        index = self.state.index
        sort_order = self.state.sort_order

        query_embedding: list[float] | None = None
        if query.strip() and not index.is_empty:
            debounce = self.ranker.config.debounce_seconds
            if debounce > 0:
                await asyncio.sleep(debounce)
            if token == self._query_token:
                query_embedding = await self._embed_query(query)

        results = self.ranker.rank(query, index.all(), index.transcript, query_embedding, sort_order)

        if token == self._query_token and index is self.state.index:
            self.state.show(results, query)
        else:
            logger.debug("Search for %r was superseded, session results left unchanged", query)
        return results

    async def _embed_query(self, query: str) -> list[float] | None:
        try:
            vector = await self.backend.embed(query)
        except Exception as e:
            logger.warning("%s", SearchBackendFailure(f"Query embedding failed, using keyword matches only: {e}"))
            return None
        return list(vector) if vector else None

    def set_sort_order(self, order: SortOrder | str) -> list[RankedClip]:
        """Re-sort the displayed results and focus the first one."""
        self.state.sort_order = SortOrder.parse(order)
        self.state.show(self.state.results, self.state.last_query)
        return self.state.results

    def clip_at(self, time: float) -> Clip | None:
        """The clip playing at `time`, e.g. for a transcript click. It becomes the active clip."""
        clip = self.state.index.clip_containing(time)
        if clip is not None:
            self.state.active_clip = clip
        return clip

    def select_clip(self, clip_id: str) -> Clip | None:
        clip = self.state.index.get(clip_id)
        if clip is not None:
            self.state.active_clip = clip
        return clip

    async def export_clip(self, clip: Clip | None = None, output_dir: str | Path = ".") -> Path:
        """Write `clip` (the active clip by default) as an MP4 file.

        Raises:
            ExportFailure: If there is nothing to export or trimming fails.
        """
        clip = clip or self.state.active_clip
        if clip is None:
            raise ExportFailure("No clip selected for export")
        if self.source is None:
            raise ExportFailure("No video loaded")
        return await export_clip(self.source, clip, output_dir)

    def save(self, path: str | Path) -> None:
        self.state.save(path)
