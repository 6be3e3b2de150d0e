from .clip import Clip, RankedClip, RawClip, make_clip_id
from .exceptions import (
    ClipHuntError,
    EnrichmentFailure,
    ExportFailure,
    FatalPipelineError,
    SearchBackendFailure,
    StaleRunError,
    VideoMetadataError,
    VideoSourceError,
)
from .index import ClipIndex
from .progress import configure, set_progress
from .sampling import SamplingPlan, plan_sample_times, sample_frames
from .session import PipelineState, SessionState
from .sorting import SortOrder, default_focus, sort_clips
from .transcription import Transcript, TranscriptSegment
from .video import FFmpegVideoSource, VideoFrame, VideoSource, download_video, export_clip

__all__ = [
    # Clips
    "Clip",
    "RawClip",
    "RankedClip",
    "make_clip_id",
    # Transcript
    "Transcript",
    "TranscriptSegment",
    # Index & session
    "ClipIndex",
    "SessionState",
    "PipelineState",
    # Sorting
    "SortOrder",
    "sort_clips",
    "default_focus",
    # Sampling
    "SamplingPlan",
    "plan_sample_times",
    "sample_frames",
    # Video
    "VideoFrame",
    "VideoSource",
    "FFmpegVideoSource",
    "download_video",
    "export_clip",
    # Exceptions
    "ClipHuntError",
    "VideoSourceError",
    "VideoMetadataError",
    "FatalPipelineError",
    "EnrichmentFailure",
    "SearchBackendFailure",
    "ExportFailure",
    "StaleRunError",
    # Configuration
    "configure",
    "set_progress",
]
