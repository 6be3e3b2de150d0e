import asyncio
import json
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cliphunt.ai.backends import (
    SUPPORTED_BACKENDS,
    build_visual_prompt,
    create_backend,
    decode_clip_candidates,
    decode_transcript,
    get_api_key,
)
from cliphunt.ai.config import clear_config_cache
from cliphunt.ai.exceptions import BackendResponseError, MissingAPIKeyError, UnsupportedBackendError
from cliphunt.ai.gemini import GeminiBackend
from cliphunt.ai.openai import OpenAIBackend
from cliphunt.base.video import VideoFrame

CLIP_JSON = {
    "startTime": 10,
    "endTime": 25,
    "title": "Crowd goes wild",
    "summary": "The winning goal",
    "viralityScore": 92,
    "reasoning": "Peak emotion",
    "tags": ["#goal", "#football"],
    "transcriptStub": "GOAL!",
}


class TestGetApiKey:
    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "from-env")

        assert get_api_key("gemini", "explicit") == "explicit"

    @pytest.mark.parametrize("provider, env_var", [("gemini", "GOOGLE_API_KEY"), ("openai", "OPENAI_API_KEY")])
    def test_reads_environment(self, monkeypatch, provider, env_var):
        monkeypatch.setenv(env_var, "secret")

        assert get_api_key(provider) == "secret"

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(MissingAPIKeyError, match="OPENAI_API_KEY"):
            get_api_key("openai")


class TestDecodeClipCandidates:
    def test_bare_array(self):
        clips = decode_clip_candidates(json.dumps([CLIP_JSON]))

        assert len(clips) == 1
        assert clips[0].title == "Crowd goes wild"
        assert clips[0].tags == ("#goal", "#football")

    def test_wrapped_object(self):
        clips = decode_clip_candidates(json.dumps({"clips": [CLIP_JSON, CLIP_JSON]}))

        assert len(clips) == 2

    def test_empty_array(self):
        assert decode_clip_candidates("[]") == []

    def test_nan_times_rejected(self):
        text = json.dumps([{**CLIP_JSON, "startTime": float("nan"), "endTime": float("nan")}])

        assert "NaN" in text
        with pytest.raises(BackendResponseError):
            decode_clip_candidates(text)

    @pytest.mark.parametrize(
        "text",
        [None, "", "   ", "not json", '{"title": "x"}', "42", json.dumps([{"title": "missing the rest"}])],
    )
    def test_malformed(self, text):
        with pytest.raises(BackendResponseError):
            decode_clip_candidates(text)


class TestDecodeTranscript:
    def test_camel_case_text(self):
        segments = decode_transcript('[{"startTime": 0, "endTime": 2.5, "text": "Hello there"}]')

        assert segments[0].start_time == 0.0
        assert segments[0].end_time == 2.5
        assert segments[0].text == "Hello there"

    def test_parsed_whisper_style(self):
        segments = decode_transcript({"segments": [{"start": 1, "end": 2, "text": "hi"}]})

        assert [(s.start_time, s.end_time, s.text) for s in segments] == [(1.0, 2.0, "hi")]

    @pytest.mark.parametrize(
        "payload",
        ['[{"startTime": 0, "text": "no end"}]', '["just text"]', '{"words": []}', '[{"start": "a", "end": 1, "text": ""}]'],
    )
    def test_malformed(self, payload):
        with pytest.raises(BackendResponseError):
            decode_transcript(payload)


class TestCreateBackend:
    def test_default_is_gemini(self):
        backend = create_backend(api_key="k")

        assert isinstance(backend, GeminiBackend)

    def test_explicit_openai(self):
        backend = create_backend("openai", api_key="k", embedding_model="text-embedding-3-large")

        assert isinstance(backend, OpenAIBackend)
        assert backend.embedding_model == "text-embedding-3-large"

    def test_unsupported(self):
        with pytest.raises(UnsupportedBackendError, match="gemini, openai"):
            create_backend("local")  # type: ignore[arg-type]

    def test_config_default_and_models(self, tmp_path):
        (tmp_path / "cliphunt.toml").write_text(
            '[ai.defaults]\nanalysis = "openai"\n\n[ai.models.openai]\nanalysis_model = "gpt-4o-mini"\n'
        )
        clear_config_cache()

        backend = create_backend()

        assert isinstance(backend, OpenAIBackend)
        assert backend.analysis_model == "gpt-4o-mini"

    def test_supported_backends(self):
        assert SUPPORTED_BACKENDS == ["gemini", "openai"]


def test_visual_prompt_mentions_duration_and_fields():
    prompt = build_visual_prompt(125.4)

    assert "125 seconds" in prompt
    assert '"viralityScore"' in prompt
    assert '"transcriptStub"' in prompt


FRAMES = [VideoFrame(timestamp=0.0, data=b"jpeg-0"), VideoFrame(timestamp=4.0, data=b"jpeg-1")]


class TestGeminiBackend:
    @pytest.fixture
    def genai(self):
        module = MagicMock()
        google = MagicMock()
        google.generativeai = module
        with patch.dict(sys.modules, {"google": google, "google.generativeai": module}):
            yield module

    def test_analyze_visual_interleaves_frames_and_labels(self, genai):
        model = genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text=json.dumps([CLIP_JSON])))

        clips = asyncio.run(GeminiBackend(api_key="k").analyze_visual(FRAMES, 30.0))

        genai.configure.assert_called_once_with(api_key="k")
        parts = model.generate_content_async.call_args.args[0]
        assert parts[0] == {"mime_type": "image/jpeg", "data": b"jpeg-0"}
        assert parts[1] == "[Timestamp: 0.0s]"
        assert parts[3] == "[Timestamp: 4.0s]"
        assert "30 seconds" in parts[-1]
        config = genai.GenerativeModel.call_args.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"
        assert clips[0].virality_score == 92

    def test_transcribe_sends_audio(self, genai):
        model = genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(
            return_value=SimpleNamespace(text='[{"startTime": 0, "endTime": 1, "text": "hey"}]')
        )

        segments = asyncio.run(GeminiBackend(api_key="k").transcribe_audio(b"mp3"))

        parts = model.generate_content_async.call_args.args[0]
        assert parts[0] == {"mime_type": "audio/mp3", "data": b"mp3"}
        assert segments[0].text == "hey"

    def test_embed(self, genai):
        genai.embed_content.return_value = {"embedding": [0.1, 0.2, 0.3]}

        vector = asyncio.run(GeminiBackend(api_key="k").embed("dog"))

        assert vector == [0.1, 0.2, 0.3]
        assert genai.embed_content.call_args.kwargs == {"model": "models/text-embedding-004", "content": "dog"}

    def test_embed_bad_response(self, genai):
        genai.embed_content.return_value = {}

        with pytest.raises(BackendResponseError):
            asyncio.run(GeminiBackend(api_key="k").embed("dog"))


class TestOpenAIBackend:
    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock()
        client.audio.transcriptions.create = AsyncMock()
        client.embeddings.create = AsyncMock()
        return client

    def _backend(self, client):
        backend = OpenAIBackend(api_key="k")
        backend._client = client
        return backend

    def test_analyze_visual(self, client):
        message = SimpleNamespace(content=json.dumps({"clips": [CLIP_JSON]}))
        client.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])

        clips = asyncio.run(self._backend(client).analyze_visual(FRAMES, 30.0))

        kwargs = client.chat.completions.create.call_args.kwargs
        content = kwargs["messages"][1]["content"]
        assert content[0]["image_url"]["url"].startswith("data:image/jpeg;base64,")
        assert content[1] == {"type": "text", "text": "[Timestamp: 0.0s]"}
        assert kwargs["response_format"] == {"type": "json_object"}
        assert clips[0].title == "Crowd goes wild"

    def test_transcribe_uses_segments(self, client):
        client.audio.transcriptions.create.return_value = SimpleNamespace(
            segments=[{"start": 0.0, "end": 1.5, "text": " Hello "}, {"start": 1.5, "end": 3.0, "text": "world"}]
        )

        segments = asyncio.run(self._backend(client).transcribe_audio(b"mp3"))

        assert [s.text for s in segments] == ["Hello", "world"]
        assert client.audio.transcriptions.create.call_args.kwargs["response_format"] == "verbose_json"

    def test_transcribe_without_segments(self, client):
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="no timings")

        with pytest.raises(BackendResponseError):
            asyncio.run(self._backend(client).transcribe_audio(b"mp3"))

    def test_embed(self, client):
        client.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(embedding=[1, 2])])

        assert asyncio.run(self._backend(client).embed("cat")) == [1.0, 2.0]

    def test_missing_key_on_first_use(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(MissingAPIKeyError):
            asyncio.run(OpenAIBackend().embed("cat"))
