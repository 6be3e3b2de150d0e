from .backends import SUPPORTED_BACKENDS, AnalysisBackend, create_backend, get_api_key
from .exceptions import (
    BackendError,
    BackendResponseError,
    ConfigError,
    MissingAPIKeyError,
    UnsupportedBackendError,
)
from .pipeline import PipelineConfig, PipelineOrchestrator, PipelineResult
from .search import HybridRanker, SearchConfig, cosine_similarity
from .session import ClipSession, FailedEvent, PipelineEvent, ProgressEvent, ReadyEvent

__all__ = [
    # Exceptions
    "BackendError",
    "BackendResponseError",
    "MissingAPIKeyError",
    "UnsupportedBackendError",
    "ConfigError",
    # Backends
    "AnalysisBackend",
    "SUPPORTED_BACKENDS",
    "create_backend",
    "get_api_key",
    # Pipeline
    "PipelineConfig",
    "PipelineOrchestrator",
    "PipelineResult",
    # Search
    "HybridRanker",
    "SearchConfig",
    "cosine_similarity",
    # Session
    "ClipSession",
    "PipelineEvent",
    "ProgressEvent",
    "ReadyEvent",
    "FailedEvent",
]
