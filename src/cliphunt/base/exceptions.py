"""Exception hierarchy for cliphunt.base module."""


class ClipHuntError(Exception):
    """Base exception for all cliphunt errors."""

    pass


class VideoSourceError(ClipHuntError):
    """Raised when a video source can't be read, sampled or trimmed."""

    pass


class VideoMetadataError(VideoSourceError):
    """Raised when there's an error getting video metadata."""

    pass


class FatalPipelineError(ClipHuntError):
    """Raised when sampling or visual analysis fails and the run is aborted."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage} failed: {reason}")
        self.stage = stage
        self.reason = reason


class EnrichmentFailure(ClipHuntError):
    """Transcription or per-clip embedding failure. Logged and absorbed, never raised to callers."""

    pass


class SearchBackendFailure(ClipHuntError):
    """Query embedding failure. Search degrades to lexical-only matching."""

    pass


class ExportFailure(ClipHuntError):
    """Raised when trimming or writing a clip fails."""

    pass


class StaleRunError(ClipHuntError):
    """Raised inside a pipeline run that was superseded by a newer one."""

    def __init__(self, run_id: int, current_run_id: int):
        super().__init__(f"Run {run_id} superseded by run {current_run_id}")
        self.run_id = run_id
        self.current_run_id = current_run_id
