from __future__ import annotations

import logging
from dataclasses import dataclass

from cliphunt.base.progress import ProgressCallback, progress_iter, report
from cliphunt.base.video import VideoFrame, VideoSource

__all__ = ["SamplingPlan", "plan_sample_times", "sample_frames"]

logger = logging.getLogger(__name__)

DEFAULT_BASE_INTERVAL = 4.0
DEFAULT_MAX_FRAMES = 45


@dataclass(frozen=True)
class SamplingPlan:
    """Frame sampling schedule covering a whole video with at most `max_frames` frames.

    Long videos are sampled more sparsely instead of being truncated: the interval
    grows to `video_duration / max_frames` once that exceeds `base_interval`.
    """

    video_duration: float
    base_interval: float = DEFAULT_BASE_INTERVAL
    max_frames: int = DEFAULT_MAX_FRAMES

    def __post_init__(self) -> None:
        if self.video_duration <= 0:
            raise ValueError(f"video_duration must be positive, got {self.video_duration}")
        if self.base_interval <= 0:
            raise ValueError(f"base_interval must be positive, got {self.base_interval}")
        if self.max_frames < 1:
            raise ValueError(f"max_frames must be >= 1, got {self.max_frames}")

    @property
    def effective_interval(self) -> float:
        return max(self.base_interval, self.video_duration / self.max_frames)

    def timestamps(self) -> list[float]:
        """Strictly increasing sample times in `[0, video_duration)`, at most `max_frames` of them."""
        interval = self.effective_interval
        times: list[float] = []
        # Multiply instead of accumulating so float error doesn't drift past the duration.
        t = 0.0
        while t < self.video_duration and len(times) < self.max_frames:
            times.append(t)
            t = len(times) * interval
        return times

    def __len__(self) -> int:
        return len(self.timestamps())


def plan_sample_times(
    video_duration: float,
    base_interval: float = DEFAULT_BASE_INTERVAL,
    max_frames: int = DEFAULT_MAX_FRAMES,
) -> list[float]:
    """Shortcut for `SamplingPlan(...).timestamps()`."""
    return SamplingPlan(video_duration, base_interval, max_frames).timestamps()


async def sample_frames(
    source: VideoSource,
    plan: SamplingPlan,
    progress_callback: ProgressCallback | None = None,
    stage: str = "Extracting frames",
) -> list[VideoFrame]:
    """Capture one JPEG frame per planned timestamp.

    Progress is reported after every frame as the share of the video covered so far,
    capped at 99 until the caller declares the stage done.
    """
    times = plan.timestamps()
    logger.debug("Sampling %d frames every %.2fs", len(times), plan.effective_interval)

    frames: list[VideoFrame] = []
    for t in progress_iter(times, desc="Sampling frames", total=len(times)):
        data = await source.capture_frame(t)
        frames.append(VideoFrame(timestamp=t, data=data))
        report(progress_callback, stage, min(99, round(t / plan.video_duration * 100)))
    return frames
