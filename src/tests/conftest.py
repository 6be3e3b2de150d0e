import pytest

from cliphunt.ai.config import clear_config_cache
from cliphunt.base.clip import Clip
from cliphunt.base.transcription import Transcript, TranscriptSegment
from tests.fakes import FakeBackend, FakeVideoSource, raw_clip


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Run every test from an empty directory so no stray config file is picked up."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def fake_source():
    return FakeVideoSource(duration=60.0)


@pytest.fixture
def fake_backend():
    return FakeBackend(
        clips=[
            raw_clip(0, 10, title="Opening", virality=40),
            raw_clip(20, 30, title="Launch", virality=90, stub="and we have liftoff"),
            raw_clip(40, 55, title="Landing", virality=70),
        ],
        segments=[
            TranscriptSegment(start_time=22.0, end_time=26.0, text="Three two one, launch!"),
            TranscriptSegment(start_time=0.0, end_time=5.0, text="Welcome to the show"),
        ],
        embeddings={"Opening": [1.0, 0.0, 0.0, 0.0], "Launch": [0.0, 1.0, 0.0, 0.0], "Landing": [0.0, 0.0, 1.0, 0.0]},
        default_embedding=[0.0, 0.0, 0.0, 1.0],
    )


@pytest.fixture
def sample_clips():
    return [
        Clip(id="clip-1-0", start_time=5.0, end_time=15.0, title="A", summary="a", virality_score=90),
        Clip(id="clip-1-1", start_time=30.0, end_time=40.0, title="B", summary="b", virality_score=40),
        Clip(id="clip-1-2", start_time=0.0, end_time=4.0, title="C", summary="c", virality_score=90),
    ]


@pytest.fixture
def sample_transcript():
    return Transcript.from_segments(
        [
            TranscriptSegment(start_time=10.0, end_time=20.0, text="Ready for launch"),
            TranscriptSegment(start_time=32.0, end_time=35.0, text="Nice weather today"),
        ]
    )
