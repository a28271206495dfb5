from typing import Sequence

from clipline import timestamps, types as t


def assemble(
    media_id: str,
    segments: Sequence[t.TranscriptSegment],
    reported_duration: float | None = None,
    language: str | None = None,
) -> t.Transcript:
    # Producer order is kept as-is; multi-speaker output may interleave.
    segments = list(segments)
    text = " ".join(s.text for s in segments)
    if segments:
        duration = max(reported_duration or 0.0, max(s.end for s in segments))
    else:
        duration = 0.0
    return t.Transcript(
        media_id=media_id,
        text=text,
        segments=segments,
        duration_seconds=round(duration, timestamps.PRECISION),
        language=language or "en",
    )


def to_dict(transcript: t.Transcript) -> dict:
    return {
        "media_id": transcript.media_id,
        "text": transcript.text,
        "language": transcript.language,
        "duration_seconds": transcript.duration_seconds,
        "segments": [
            {
                "id": s.segment_id,
                "text": s.text,
                "start": s.start,
                "end": s.end,
                "duration": s.duration,
                "confidence": s.confidence,
                "speaker": s.speaker,
                "words": [
                    {"text": w.text, "start": w.start, "end": w.end, "confidence": w.confidence}
                    for w in s.words
                ],
            }
            for s in transcript.segments
        ],
    }


def from_dict(d: dict) -> t.Transcript:
    segments = [
        t.TranscriptSegment(
            segment_id=s["id"],
            text=s["text"],
            start=s["start"],
            end=s["end"],
            duration=s["duration"],
            confidence=s.get("confidence"),
            speaker=s.get("speaker"),
            words=[t.WordSpan(**w) for w in s.get("words", [])],
        )
        for s in d.get("segments", [])
    ]
    return t.Transcript(
        media_id=d["media_id"],
        text=d.get("text", ""),
        segments=segments,
        duration_seconds=d.get("duration_seconds", 0.0),
        language=d.get("language", "en"),
    )
