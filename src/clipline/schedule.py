"""Clip timeline scheduling.

Turns untrusted clip candidates into an ordered, non-overlapping timeline.
Candidates keep their narrative order; a candidate that cannot be placed is
dropped and reported, never reordered. Boundaries are consumer-facing
timecodes, so they are kept at 2 decimal places (segments use 3). A negative
candidate start is floored to 0 before padding.

Gaps and overlaps are only resolved within one source. Clips from different
sources are encoded separately before concatenation, so one ending exactly
where another source's clip starts needs no adjustment.
"""
import os
from dataclasses import dataclass
from typing import Mapping, Sequence

from pydantic import BaseModel

from clipline import types as t, util

PRECISION = 2

UNKNOWN_SOURCE = "unknown-source"
MALFORMED = "malformed"
OUT_OF_RANGE = "out-of-range"
UNRECONCILABLE_OVERLAP = "unreconcilable-overlap"


@dataclass(frozen=True)
class SchedulerConfig:
    min_duration: float = 3.0
    max_duration: float = 60.0
    start_padding: float = 2.0
    end_padding: float = 2.0
    min_gap: float = 0.5

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        def env(name: str, default: float) -> float:
            value = util.to_float(os.environ.get(name))
            return default if value is None else value

        d = cls()
        return cls(
            min_duration=env("CLIPLINE_MIN_DURATION", d.min_duration),
            max_duration=env("CLIPLINE_MAX_DURATION", d.max_duration),
            start_padding=env("CLIPLINE_START_PADDING", d.start_padding),
            end_padding=env("CLIPLINE_END_PADDING", d.end_padding),
            min_gap=env("CLIPLINE_MIN_GAP", d.min_gap),
        )


def _r(x: float) -> float:
    return round(x, PRECISION)


def schedule(
    candidates: Sequence[t.ClipCandidate],
    sources: Mapping[str, t.MediaSource],
    config: SchedulerConfig | None = None,
) -> t.ScheduleResult:
    cfg = config or SchedulerConfig()
    result = t.ScheduleResult()
    last_end: dict[str, float] = {}

    def reject(index: int, c: t.ClipCandidate, reason: str, detail: str):
        print(f"[schedule] Dropped candidate {index} ({c.video_id}): {reason} - {detail}")
        result.rejections.append(t.Rejection(
            candidate_index=index, video_id=c.video_id, reason=reason, detail=detail,
        ))

    for index, c in enumerate(candidates):
        source = sources.get(c.video_id)
        if source is None:
            reject(index, c, UNKNOWN_SOURCE, f"no media source {c.video_id!r}")
            continue

        start = util.to_float(c.start)
        end = util.to_float(c.end)
        if start is None or end is None:
            reject(index, c, MALFORMED, f"start={c.start!r} end={c.end!r}")
            continue
        start = max(_r(start), 0.0)
        end = _r(end)

        if start > cfg.start_padding:
            start = _r(start - cfg.start_padding)
        end = _r(end + cfg.end_padding)

        limit = source.duration_seconds or None
        if limit:
            if start >= limit:
                reject(index, c, OUT_OF_RANGE, f"start {start} at or beyond media end {limit}")
                continue
            end = min(end, _r(limit))

        if _r(end - start) < cfg.min_duration:
            end = _r(start + cfg.min_duration)
            if limit:
                end = min(end, _r(limit))
        elif _r(end - start) > cfg.max_duration:
            end = _r(start + cfg.max_duration)

        prev = last_end.get(c.video_id)
        if prev is not None:
            floor = _r(prev + cfg.min_gap)
            if start < floor:
                start = floor
                if start >= end:
                    reject(index, c, UNRECONCILABLE_OVERLAP,
                           f"needs start >= {floor} but ends at {end}")
                    continue

        last_end[c.video_id] = end
        result.clips.append(t.ScheduledClip(
            video_id=c.video_id,
            text=c.text,
            start=start,
            end=end,
            duration=_r(end - start),
            position=len(result.clips),
            candidate_index=index,
        ))

    return result


class ClipRecord(BaseModel):
    videoId: str
    transcriptText: str
    startTime: float
    endTime: float


def clips_to_json(clips: Sequence[t.ScheduledClip]) -> list[dict]:
    return [
        ClipRecord(
            videoId=c.video_id,
            transcriptText=c.text,
            startTime=_r(c.start),
            endTime=_r(c.end),
        ).model_dump()
        for c in clips
    ]
