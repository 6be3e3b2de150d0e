from dataclasses import replace

import pytest

from cliphunt.base.clip import Clip, RankedClip
from cliphunt.base.sorting import SortOrder, default_focus, sort_clips


def test_chronological_order(sample_clips):
    ordered = sort_clips(sample_clips, SortOrder.CHRONOLOGICAL)

    assert [clip.id for clip in ordered] == ["clip-1-2", "clip-1-0", "clip-1-1"]


def test_virality_order_is_stable():
    clips = [
        Clip(id=f"clip-{i}", start_time=float(i), end_time=float(i + 1), title="", summary="", virality_score=score)
        for i, score in enumerate([90, 40, 90])
    ]

    ordered = sort_clips(clips, SortOrder.VIRALITY)

    assert [clip.id for clip in ordered] == ["clip-0", "clip-2", "clip-1"]


def test_equal_start_times_keep_input_order(sample_clips):
    a, b, _ = sample_clips
    twin = RankedClip(replace(b, id="twin", start_time=a.start_time))

    ordered = sort_clips([RankedClip(a), twin], SortOrder.CHRONOLOGICAL)

    assert [r.clip.id for r in ordered] == ["clip-1-0", "twin"]


def test_sorts_ranked_clips(sample_clips):
    ranked = [RankedClip(clip, score=i) for i, clip in enumerate(sample_clips)]

    ordered = sort_clips(ranked, SortOrder.VIRALITY)

    assert [r.clip.id for r in ordered] == ["clip-1-0", "clip-1-2", "clip-1-1"]


def test_sort_does_not_mutate_input(sample_clips):
    before = list(sample_clips)

    sort_clips(sample_clips, SortOrder.CHRONOLOGICAL)

    assert sample_clips == before


def test_default_focus(sample_clips):
    assert default_focus(sample_clips) is sample_clips[0]
    assert default_focus([]) is None


@pytest.mark.parametrize(
    "value, expected",
    [
        ("chronological", SortOrder.CHRONOLOGICAL),
        ("VIRALITY", SortOrder.VIRALITY),
        ("time", SortOrder.CHRONOLOGICAL),
        (" viral ", SortOrder.VIRALITY),
        (SortOrder.VIRALITY, SortOrder.VIRALITY),
    ],
)
def test_parse(value, expected):
    assert SortOrder.parse(value) is expected


def test_parse_unknown():
    with pytest.raises(ValueError, match="Unknown sort order"):
        SortOrder.parse("alphabetical")
