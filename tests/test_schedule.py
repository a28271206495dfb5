import random

import pytest

from clipline import schedule, types as t
from clipline.schedule import SchedulerConfig


def _source(media_id: str, duration: float | None = 120.0) -> t.MediaSource:
    return t.MediaSource(media_id=media_id, origin=t.UPLOAD, locator=f"/media/{media_id}.mp4",
                         duration_seconds=duration, status=t.TRANSCRIBED)


def _c(video_id: str, start, end, text: str = "") -> t.ClipCandidate:
    return t.ClipCandidate(video_id=video_id, start=start, end=end, text=text)


SOURCES = {"a": _source("a"), "b": _source("b")}


def _bounds(result: t.ScheduleResult) -> list[tuple[float, float]]:
    return [(c.start, c.end) for c in result.clips]


def test_short_early_clip_is_not_start_padded():
    result = schedule.schedule([_c("a", 1.0, 2.0)], SOURCES)
    assert _bounds(result) == [(1.0, 4.0)]


def test_clip_is_padded_on_both_sides():
    result = schedule.schedule([_c("a", 10.0, 11.0)], SOURCES)
    assert _bounds(result) == [(8.0, 13.0)]
    assert result.clips[0].duration == 5.0


def test_overlapping_clip_on_same_source_is_shifted_past_gap():
    result = schedule.schedule([_c("a", 10.0, 11.0), _c("a", 13.2, 14.2)], SOURCES)
    assert _bounds(result) == [(8.0, 13.0), (13.5, 16.2)]
    assert result.rejections == []


def test_different_sources_are_not_gap_adjusted():
    result = schedule.schedule([_c("a", 10.0, 11.0), _c("b", 10.0, 11.0)], SOURCES)
    assert _bounds(result) == [(8.0, 13.0), (8.0, 13.0)]


def test_unreconcilable_overlap_is_rejected_and_positions_stay_dense():
    result = schedule.schedule(
        [_c("a", 10.0, 11.0), _c("a", 5.0, 6.0), _c("a", 30.0, 31.0)], SOURCES,
    )
    assert _bounds(result) == [(8.0, 13.0), (28.0, 33.0)]
    assert [c.position for c in result.clips] == [0, 1]
    assert [c.candidate_index for c in result.clips] == [0, 2]
    assert [(r.candidate_index, r.reason) for r in result.rejections] == [
        (1, schedule.UNRECONCILABLE_OVERLAP),
    ]


def test_unknown_source_is_rejected():
    result = schedule.schedule([_c("nope", 10, 11), _c("a", 10, 11)], SOURCES)
    assert [r.reason for r in result.rejections] == [schedule.UNKNOWN_SOURCE]
    assert result.clips[0].video_id == "a"
    assert result.clips[0].position == 0


@pytest.mark.parametrize("start,end", [(None, 5.0), (1.0, None), ("abc", 4.0), (1.0, float("nan"))])
def test_malformed_candidate_is_rejected(start, end):
    result = schedule.schedule([_c("a", start, end)], SOURCES)
    assert result.clips == []
    assert result.rejections[0].reason == schedule.MALFORMED


def test_numeric_strings_are_accepted():
    result = schedule.schedule([_c("a", "10", "11")], SOURCES)
    assert _bounds(result) == [(8.0, 13.0)]


def test_long_clip_is_capped_at_max_duration():
    result = schedule.schedule([_c("a", 10.0, 100.0)], SOURCES)
    assert _bounds(result) == [(8.0, 68.0)]


def test_end_is_clamped_to_media_duration():
    sources = {"a": _source("a", duration=10.0)}
    result = schedule.schedule([_c("a", 9.5, 9.6)], sources)
    assert _bounds(result) == [(7.5, 10.0)]


def test_min_duration_extension_stops_at_media_end():
    sources = {"a": _source("a", duration=10.0)}
    config = SchedulerConfig(start_padding=0.0, end_padding=0.0)
    result = schedule.schedule([_c("a", 9.0, 9.5)], sources, config)
    assert _bounds(result) == [(9.0, 10.0)]


def test_start_beyond_media_is_out_of_range():
    sources = {"a": _source("a", duration=10.0)}
    result = schedule.schedule([_c("a", 20.0, 21.0)], sources)
    assert result.clips == []
    assert result.rejections[0].reason == schedule.OUT_OF_RANGE


def test_unknown_media_duration_skips_clamp():
    sources = {"a": _source("a", duration=None)}
    result = schedule.schedule([_c("a", 500.0, 510.0)], sources)
    assert _bounds(result) == [(498.0, 512.0)]


def test_negative_start_is_floored():
    result = schedule.schedule([_c("a", -5.0, 1.0)], SOURCES)
    assert _bounds(result) == [(0.0, 3.0)]


def test_boundaries_are_rounded_to_hundredths():
    result = schedule.schedule([_c("a", 10.123, 11.456)], SOURCES)
    clip = result.clips[0]
    assert (clip.start, clip.end, clip.duration) == (8.12, 13.46, 5.34)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("CLIPLINE_MIN_DURATION", "5")
    monkeypatch.setenv("CLIPLINE_START_PADDING", "0.5")
    monkeypatch.setenv("CLIPLINE_MIN_GAP", "not a number")
    config = SchedulerConfig.from_env()
    assert config.min_duration == 5.0
    assert config.start_padding == 0.5
    assert config.min_gap == 0.5
    assert config.max_duration == 60.0


def test_clips_to_json_uses_camel_case_keys():
    result = schedule.schedule([_c("a", 10.0, 11.0, text="Duck and cover.")], SOURCES)
    assert schedule.clips_to_json(result.clips) == [
        {"videoId": "a", "transcriptText": "Duck and cover.", "startTime": 8.0, "endTime": 13.0},
    ]


def _random_candidates(rng: random.Random, n: int) -> list[t.ClipCandidate]:
    candidates = []
    for _ in range(n):
        start = rng.uniform(-5, 130)
        candidates.append(_c(rng.choice(["a", "b", "c"]), start, start + rng.uniform(-2, 90)))
    return candidates


@pytest.mark.parametrize("seed", range(20))
def test_schedule_invariants_hold_for_random_input(seed):
    rng = random.Random(seed)
    candidates = _random_candidates(rng, 30)
    config = SchedulerConfig()
    result = schedule.schedule(candidates, SOURCES, config)

    assert len(result.clips) + len(result.rejections) == len(candidates)
    assert [c.position for c in result.clips] == list(range(len(result.clips)))
    indexes = [c.candidate_index for c in result.clips]
    assert indexes == sorted(indexes)

    last_end: dict[str, float] = {}
    for clip in result.clips:
        assert 0 <= clip.start < clip.end
        assert clip.duration <= config.max_duration
        assert clip.end <= SOURCES[clip.video_id].duration_seconds
        if clip.video_id in last_end:
            assert clip.start >= round(last_end[clip.video_id] + config.min_gap, 2)
        last_end[clip.video_id] = clip.end
