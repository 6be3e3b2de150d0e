"""Analysis backend interface and helpers shared by the concrete backends."""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from typing import Any, Literal

from cliphunt.ai.config import get_default_backend, get_model_overrides
from cliphunt.ai.exceptions import API_KEY_ENV_VARS, BackendResponseError, MissingAPIKeyError, UnsupportedBackendError
from cliphunt.base.clip import RawClip
from cliphunt.base.transcription import TranscriptSegment
from cliphunt.base.video import VideoFrame

AnalysisBackendName = Literal["gemini", "openai"]

SUPPORTED_BACKENDS: list[str] = ["gemini", "openai"]

SYSTEM_INSTRUCTION = (
    "You are a professional short-form video clipper. You are precise with timestamps and only "
    "propose segments that exist in the footage you were shown."
)

CLIP_FIELDS_DESCRIPTION = """Return JSON only. Each clip is an object with:
- "startTime" (number, seconds)
- "endTime" (number, seconds)
- "title" (string, catchy title)
- "summary" (string, what happens)
- "viralityScore" (number 0-100, visual interest, action or emotion)
- "reasoning" (string, why this segment would perform well)
- "tags" (array of 3-5 strings, hashtags or keywords)
- "transcriptStub" (string, likely spoken line or action caption for subtitles)"""

TRANSCRIPTION_PROMPT = (
    "Transcribe the following audio. Return a JSON array of segments. Each segment has "
    "'startTime' (number, seconds), 'endTime' (number, seconds) and 'text' (string). "
    "Break segments at natural pauses or sentence ends."
)


def get_api_key(provider: str, api_key: str | None = None) -> str:
    """Get API key for a provider.

    Args:
        provider: Provider name (e.g., 'gemini', 'openai')
        api_key: Optional explicit API key. If provided, returns this directly.

    Returns:
        The API key string.

    Raises:
        MissingAPIKeyError: If no API key is found.
    """
    if api_key:
        return api_key

    env_var = API_KEY_ENV_VARS.get(provider)
    if env_var:
        key = os.environ.get(env_var)
        if key:
            return key

    raise MissingAPIKeyError(provider)


def build_visual_prompt(video_duration: float) -> str:
    return (
        "You are an expert video editor and social media strategist. The following images are frames "
        "sampled every few seconds from one video, each followed by its timestamp. Identify the 3-5 most "
        "engaging segments for vertical short-form platforms such as YouTube Shorts or TikTok.\n\n"
        f"{CLIP_FIELDS_DESCRIPTION}\n\n"
        f"Total video duration: {video_duration:.0f} seconds."
    )


def frame_label(frame: VideoFrame) -> str:
    return f"[Timestamp: {frame.timestamp:.1f}s]"


def _load_json(text: str | None) -> Any:
    if not text or not text.strip():
        raise BackendResponseError("Backend returned an empty response")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise BackendResponseError(f"Backend returned invalid JSON: {e}") from e


def _unwrap_list(payload: Any, keys: tuple[str, ...]) -> list[Any]:
    # JSON-object response modes wrap the array, e.g. {"clips": [...]}.
    if isinstance(payload, dict):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    if isinstance(payload, list):
        return payload
    raise BackendResponseError(f"Expected a JSON array, got {type(payload).__name__}")


def decode_clip_candidates(text: str | None) -> list[RawClip]:
    """Decode the visual analysis answer into raw clip candidates.

    Raises:
        BackendResponseError: If the answer isn't a list of well-formed clip objects.
    """
    items = _unwrap_list(_load_json(text), ("clips", "segments"))
    try:
        return [RawClip.from_dict(item) for item in items]
    except ValueError as e:
        raise BackendResponseError(str(e)) from e


def decode_transcript(payload: Any) -> list[TranscriptSegment]:
    """Decode a transcription answer (JSON text or already parsed) into segments.

    Raises:
        BackendResponseError: If the answer isn't a list of segment objects.
    """
    if isinstance(payload, (str, bytes)) or payload is None:
        payload = _load_json(payload.decode() if isinstance(payload, bytes) else payload)
    items = _unwrap_list(payload, ("segments",))

    segments = []
    for item in items:
        if not isinstance(item, dict):
            raise BackendResponseError(f"Transcript segment must be an object, got {type(item).__name__}")
        start = item.get("startTime", item.get("start"))
        end = item.get("endTime", item.get("end"))
        if start is None or end is None or "text" not in item:
            raise BackendResponseError(f"Transcript segment is missing fields: {item}")
        try:
            segments.append(TranscriptSegment(start_time=float(start), end_time=float(end), text=str(item["text"])))
        except (TypeError, ValueError) as e:
            raise BackendResponseError(f"Transcript segment has invalid values: {e}") from e
    return segments


class AnalysisBackend(ABC):
    """Generative analysis and embedding capability used by the pipeline and search.

    All methods are fallible and may be slow; callers decide which failures are fatal.
    """

    name: str = "backend"

    @abstractmethod
    async def analyze_visual(self, frames: list[VideoFrame], video_duration: float) -> list[RawClip]:
        """Propose clip candidates from sampled frames, in the backend's order."""

    @abstractmethod
    async def transcribe_audio(self, audio: bytes) -> list[TranscriptSegment]:
        """Transcribe MP3 audio into timed segments."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed `text` into a fixed-length vector."""


def create_backend(
    backend: AnalysisBackendName | None = None,
    api_key: str | None = None,
    **model_overrides: str,
) -> AnalysisBackend:
    """Instantiate a backend by name.

    Args:
        backend: 'gemini' or 'openai'. If None, uses config default or 'gemini'.
        api_key: API key. If None, reads from environment.
        model_overrides: Model names passed to the backend, on top of `[ai.models]` config.

    Raises:
        UnsupportedBackendError: If the backend name is unknown.
    """
    resolved_backend: str = backend if backend is not None else get_default_backend("analysis")
    if resolved_backend not in SUPPORTED_BACKENDS:
        raise UnsupportedBackendError(resolved_backend, SUPPORTED_BACKENDS)

    models = {**get_model_overrides(resolved_backend), **model_overrides}

    if resolved_backend == "gemini":
        from cliphunt.ai.gemini import GeminiBackend

        return GeminiBackend(api_key=api_key, **models)

    from cliphunt.ai.openai import OpenAIBackend

    return OpenAIBackend(api_key=api_key, **models)
