"""OpenAI analysis backend."""

from __future__ import annotations

import base64
import logging
from typing import Any

from cliphunt.ai.backends import (
    SYSTEM_INSTRUCTION,
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


class OpenAIBackend(AnalysisBackend):
    """Analysis backend on top of the `openai` async client.

    Visual analysis goes through chat completions with image parts, transcription
    through Whisper and embeddings through the embeddings endpoint.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        analysis_model: str = "gpt-4o",
        transcription_model: str = "whisper-1",
        embedding_model: str = "text-embedding-3-small",
    ):
        self.api_key = api_key
        self.analysis_model = analysis_model
        self.transcription_model = transcription_model
        self.embedding_model = embedding_model
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=get_api_key("openai", self.api_key))
        return self._client

    async def analyze_visual(self, frames: list[VideoFrame], video_duration: float) -> list[RawClip]:
        content: list[dict[str, Any]] = []
        for frame in frames:
            encoded = base64.b64encode(frame.data).decode("ascii")
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{frame.mime_type};base64,{encoded}", "detail": "low"},
                }
            )
            content.append({"type": "text", "text": frame_label(frame)})
        content.append(
            {
                "type": "text",
                "text": build_visual_prompt(video_duration) + '\nWrap the list as {"clips": [...]}.',
            }
        )

        logger.debug("Sending %d frames to %s", len(frames), self.analysis_model)
        response = await self._get_client().chat.completions.create(
            model=self.analysis_model,
            messages=[
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": content},
            ],
            response_format={"type": "json_object"},
            temperature=0.4,
        )
        return decode_clip_candidates(response.choices[0].message.content)

    async def transcribe_audio(self, audio: bytes) -> list[TranscriptSegment]:
        response = await self._get_client().audio.transcriptions.create(
            model=self.transcription_model,
            file=("audio.mp3", audio, "audio/mpeg"),
            response_format="verbose_json",
            timestamp_granularities=["segment"],
        )
        segments = getattr(response, "segments", None)
        if segments is None:
            raise BackendResponseError("Whisper response carries no segments")
        items = [s if isinstance(s, dict) else s.model_dump() for s in segments]
        return decode_transcript([{**item, "text": str(item.get("text", "")).strip()} for item in items])

    async def embed(self, text: str) -> list[float]:
        response = await self._get_client().embeddings.create(model=self.embedding_model, input=text)
        if not response.data:
            raise BackendResponseError("Embedding response is empty")
        return [float(v) for v in response.data[0].embedding]
