from cliphunt.base.transcription import Transcript, TranscriptSegment


def test_from_segments_orders_by_start_time_stably():
    first = TranscriptSegment(start_time=5.0, end_time=6.0, text="first at five")
    second = TranscriptSegment(start_time=5.0, end_time=7.0, text="second at five")
    early = TranscriptSegment(start_time=1.0, end_time=2.0, text="early")

    transcript = Transcript.from_segments([first, second, early])

    assert list(transcript) == [early, first, second]


def test_empty_transcript():
    transcript = Transcript()

    assert len(transcript) == 0
    assert not transcript
    assert transcript.matching("anything") == []
    assert transcript.segment_at(1.0) is None
    assert transcript.text == ""


def test_matching_is_case_insensitive_substring(sample_transcript):
    matches = sample_transcript.matching("LAUNCH")

    assert [s.text for s in matches] == ["Ready for launch"]
    assert sample_transcript.matching("weather tod")[0].start_time == 32.0
    assert sample_transcript.matching("rain") == []


def test_matching_empty_query(sample_transcript):
    assert sample_transcript.matching("") == []


def test_segment_at(sample_transcript):
    assert sample_transcript.segment_at(10.0).text == "Ready for launch"
    assert sample_transcript.segment_at(19.9).text == "Ready for launch"
    assert sample_transcript.segment_at(20.0) is None
    assert sample_transcript.segment_at(33.0).text == "Nice weather today"


def test_text_joins_segments(sample_transcript):
    assert sample_transcript.text == "Ready for launch Nice weather today"


def test_dict_round_trip(sample_transcript):
    assert Transcript.from_dict(sample_transcript.to_dict()) == sample_transcript
