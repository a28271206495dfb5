from typing import Any, Iterable

from clipline import timestamps, types as t, util

CLAMPED = "clamped"
REPAIRED = "repaired"
MISSING = "missing-field"

NO_SPEECH = "[no speech]"


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _words(raw_words: Iterable, unit: str, media_duration: float | None) -> list[t.WordSpan]:
    words = []
    for w in raw_words:
        text = str(_get(w, "text", "") or "").strip()
        start = max(timestamps.normalize_start(_get(w, "start"), unit), 0.0)
        end = timestamps.normalize(_get(w, "end"), unit, default=start)
        if media_duration:
            start = min(start, media_duration)
            end = min(end, media_duration)
        words.append(t.WordSpan(
            text=text,
            start=start,
            end=max(end, start),
            confidence=util.to_float(_get(w, "confidence")),
        ))
    return words


def validate_segment(
    raw: t.RawSegment,
    index: int,
    media_duration: float | None = None,
    unit: str = timestamps.AUTO,
    taken_ids: set[str] | None = None,
    diagnostics: list[t.Diagnostic] | None = None,
) -> t.TranscriptSegment:
    """Repairs one raw segment into a TranscriptSegment. Never drops it."""
    taken = taken_ids if taken_ids is not None else set()
    diags = diagnostics if diagnostics is not None else []

    def note(kind: str, field: str, message: str):
        diags.append(t.Diagnostic(kind=kind, segment_index=index, field=field, message=message))

    text = str(raw.text).strip() if raw.text is not None else ""
    if not text:
        note(MISSING, "text", "empty text")
        text = NO_SPEECH

    if timestamps.coerce(raw.start) is None:
        note(MISSING, "start", f"start {raw.start!r} is not a number, using 0")
    start = timestamps.normalize_start(raw.start, unit)
    if start < 0:
        note(REPAIRED, "start", f"negative start {start}")
        start = 0.0

    if timestamps.coerce(raw.end) is None:
        note(MISSING, "end", f"end {raw.end!r} is not a number, using start + 1")
    end = timestamps.normalize_end(raw.end, start, unit)
    if end <= start:
        note(REPAIRED, "end", f"end {end} <= start {start}")
        end = round(start + 1, timestamps.PRECISION)

    if media_duration and end > media_duration:
        note(CLAMPED, "end", f"end {end} beyond media duration {media_duration}")
        end = round(media_duration, timestamps.PRECISION)
        if end <= start:
            start = end

    confidence = util.to_float(raw.confidence)
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        note(REPAIRED, "confidence", f"confidence {confidence} outside [0, 1]")
        confidence = None

    segment_id = str(raw.segment_id).strip() if raw.segment_id is not None else ""
    if not segment_id or segment_id in taken:
        if segment_id:
            note(REPAIRED, "id", f"duplicate id {segment_id!r}")
        segment_id = f"segment-{index}"
        n = 1
        while segment_id in taken:
            segment_id = f"segment-{index}-{n}"
            n += 1
    taken.add(segment_id)

    return t.TranscriptSegment(
        segment_id=segment_id,
        text=text,
        start=start,
        end=end,
        duration=round(end - start, timestamps.PRECISION),
        confidence=confidence,
        words=_words(raw.words or [], unit, media_duration),
        speaker=str(raw.speaker) if raw.speaker is not None else None,
    )


def validate_segments(
    raws: Iterable[t.RawSegment],
    media_duration: float | None = None,
    unit: str = timestamps.AUTO,
) -> tuple[list[t.TranscriptSegment], list[t.Diagnostic]]:
    taken: set[str] = set()
    diagnostics: list[t.Diagnostic] = []
    segments = [
        validate_segment(raw, i, media_duration, unit, taken, diagnostics)
        for i, raw in enumerate(raws)
    ]
    return segments, diagnostics
