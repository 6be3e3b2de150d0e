"""Google Gemini analysis backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from cliphunt.ai.backends import (
    SYSTEM_INSTRUCTION,
    TRANSCRIPTION_PROMPT,
    AnalysisBackend,
    build_visual_prompt,
    decode_clip_candidates,
    decode_transcript,
    frame_label,
    get_api_key,
)
from cliphunt.ai.exceptions import BackendResponseError
from cliphunt.base.clip import RawClip
from cliphunt.base.transcription import TranscriptSegment
from cliphunt.base.video import VideoFrame

logger = logging.getLogger(__name__)

_CLIP_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "startTime": {"type": "number"},
            "endTime": {"type": "number"},
            "title": {"type": "string"},
            "summary": {"type": "string"},
            "viralityScore": {"type": "number"},
            "reasoning": {"type": "string"},
            "tags": {"type": "array", "items": {"type": "string"}},
            "transcriptStub": {"type": "string"},
        },
        "required": ["startTime", "endTime", "title", "summary", "viralityScore", "tags"],
    },
}

_SEGMENT_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "startTime": {"type": "number"},
            "endTime": {"type": "number"},
            "text": {"type": "string"},
        },
        "required": ["startTime", "endTime", "text"],
    },
}


class GeminiBackend(AnalysisBackend):
    """Analysis backend on top of `google.generativeai`.

    Frames are sent inline as JPEG parts, each followed by a timestamp label, so the
    model can refer back to real positions in the video.

    Example:
        >>> backend = GeminiBackend()
        >>> vector = asyncio.run(backend.embed("dog catches frisbee"))
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        analysis_model: str = "gemini-2.5-flash",
        transcription_model: str = "gemini-2.5-flash",
        embedding_model: str = "models/text-embedding-004",
    ):
        self.api_key = api_key
        self.analysis_model = analysis_model
        self.transcription_model = transcription_model
        self.embedding_model = embedding_model
        self._configured = False

    def _genai(self) -> Any:
        import google.generativeai as genai

        if not self._configured:
            genai.configure(api_key=get_api_key("gemini", self.api_key))
            self._configured = True
        return genai

    def _model(self, model_name: str, schema: dict[str, Any]) -> Any:
        genai = self._genai()
        return genai.GenerativeModel(
            model_name,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={
                "response_mime_type": "application/json",
                "response_schema": schema,
            },
        )

    @staticmethod
    def _text(response: Any) -> str:
        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or carries no parts.
            raise BackendResponseError(f"Gemini returned no text: {e}") from e

    async def analyze_visual(self, frames: list[VideoFrame], video_duration: float) -> list[RawClip]:
        parts: list[Any] = []
        for frame in frames:
            parts.append({"mime_type": frame.mime_type, "data": frame.data})
            parts.append(frame_label(frame))
        parts.append(build_visual_prompt(video_duration))

        logger.debug("Sending %d frames to %s", len(frames), self.analysis_model)
        model = self._model(self.analysis_model, _CLIP_SCHEMA)
        response = await model.generate_content_async(parts)
        return decode_clip_candidates(self._text(response))

    async def transcribe_audio(self, audio: bytes) -> list[TranscriptSegment]:
        model = self._model(self.transcription_model, _SEGMENT_SCHEMA)
        response = await model.generate_content_async(
            [{"mime_type": "audio/mp3", "data": audio}, TRANSCRIPTION_PROMPT]
        )
        return decode_transcript(self._text(response))

    async def embed(self, text: str) -> list[float]:
        genai = self._genai()
        result = await asyncio.to_thread(genai.embed_content, model=self.embedding_model, content=text)
        try:
            values = result["embedding"]
        except (KeyError, TypeError) as e:
            raise BackendResponseError("Gemini embedding response has no values") from e
        return [float(v) for v in values]
