from dataclasses import dataclass, field

UPLOAD = "upload"
REMOTE = "remote-reference"

PENDING = "pending"
INGESTED = "ingested"
TRANSCRIBING = "transcribing"
TRANSCRIBED = "transcribed"
FAILED = "failed"


@dataclass
class MediaSource:
    media_id: str
    origin: str
    locator: str
    duration_seconds: float | None = None
    status: str = PENDING
    title: str = ""
    error: str | None = None
    thumbnail_path: str = ""


@dataclass
class WordSpan:
    text: str
    start: float
    end: float
    confidence: float | None = None


@dataclass
class TranscriptSegment:
    segment_id: str
    text: str
    start: float
    end: float
    duration: float
    confidence: float | None = None
    words: list[WordSpan] = field(default_factory=list)
    speaker: str | None = None


@dataclass
class Transcript:
    media_id: str
    text: str
    segments: list[TranscriptSegment]
    duration_seconds: float
    language: str = "en"

    @property
    def is_empty(self) -> bool:
        return not self.segments


@dataclass
class RawSegment:
    """Provider output before validation. Fields are untrusted."""
    text: object = ""
    start: object = None
    end: object = None
    segment_id: object = None
    confidence: object = None
    words: list = field(default_factory=list)
    speaker: object = None

    @classmethod
    def from_dict(cls, d: dict) -> "RawSegment":
        return cls(
            text=d.get("text", ""),
            start=d.get("start"),
            end=d.get("end"),
            segment_id=d.get("id", d.get("segment_id")),
            confidence=d.get("confidence"),
            words=list(d.get("words") or []),
            speaker=d.get("speaker"),
        )


@dataclass
class RawTranscript:
    segments: list[RawSegment]
    unit: str = "auto"
    duration_seconds: float | None = None
    language: str = "en"


@dataclass
class Diagnostic:
    kind: str
    segment_index: int
    field: str
    message: str


@dataclass
class ClipCandidate:
    video_id: str
    start: float | None
    end: float | None
    text: str = ""
    notes: str = ""


@dataclass
class ScheduledClip:
    video_id: str
    text: str
    start: float
    end: float
    duration: float
    position: int
    candidate_index: int


@dataclass
class Rejection:
    candidate_index: int
    video_id: str
    reason: str
    detail: str = ""


@dataclass
class ScheduleResult:
    clips: list[ScheduledClip] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)


@dataclass
class ExtractInstruction:
    position: int
    video_id: str
    locator: str
    start: float
    end: float
    output_name: str


@dataclass
class RenderPlan:
    extractions: list[ExtractInstruction]
    concat_order: list[str]
    total_duration: float
