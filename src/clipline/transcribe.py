import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from clipline import errors, runtime, timestamps, types as t, util, youtube

QUEUED = "queued"
PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"


@runtime_checkable
class Transcriber(Protocol):
    def transcribe(self, source: t.MediaSource) -> t.RawTranscript: ...


class TranscriptionProvider(Protocol):
    def submit(self, locator: str) -> str: ...
    def poll(self, handle: str) -> "PollResult": ...


@dataclass
class PollResult:
    status: str
    transcript: t.RawTranscript | None = None
    error: str | None = None


def wait_for(
    provider: TranscriptionProvider,
    handle: str,
    timeout: float = runtime.POLL_TIMEOUT,
    interval: float = runtime.POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> t.RawTranscript:
    """Polls until the job completes, fails, or the wall-clock bound runs out."""
    started = clock()
    while True:
        result = provider.poll(handle)
        if result.status == COMPLETED:
            return result.transcript or t.RawTranscript(segments=[])
        if result.status == ERROR:
            raise errors.TranscriptionFailed(f"Transcription {handle} failed: {result.error}")
        waited = clock() - started
        if waited >= timeout:
            raise errors.TranscriptionTimeout(handle, waited)
        print(f"  [{handle}] status: {result.status} ({waited:.0f}s)")
        sleep(min(interval, timeout - waited))


class AssemblyAITranscriber:
    def __init__(
        self, api_key: str | None = None,
        timeout: float = runtime.POLL_TIMEOUT, interval: float = runtime.POLL_INTERVAL,
    ):
        import assemblyai as aai
        from assemblyai import api as aai_api
        aai.settings.api_key = api_key or os.environ["ASSEMBLYAI_API_KEY"]
        self._aai = aai
        self._api = aai_api
        self._timeout = timeout
        self._interval = interval

    def _config(self):
        return self._aai.TranscriptionConfig(
            speech_model=self._aai.SpeechModel.best,
            speaker_labels=True,
            disfluencies=True,
            format_text=True,
            filter_profanity=False,
            auto_chapters=False,
            entity_detection=False,
            sentiment_analysis=False,
            auto_highlights=False,
            iab_categories=False,
            content_safety=False,
            summarization=False,
        )

    def submit(self, locator: str) -> str:
        transcript = self._aai.Transcriber().submit(locator, config=self._config())
        return transcript.id

    def poll(self, handle: str) -> PollResult:
        # Transcript.get_by_id blocks until the job finishes, so fetch the status once.
        client = self._aai.Client.get_default()
        response = self._api.get_transcript(client.http_client, handle)
        transcript = self._aai.Transcript.from_response(client=client, response=response)
        if transcript.status == self._aai.TranscriptStatus.error:
            return PollResult(status=ERROR, error=transcript.error)
        if transcript.status == self._aai.TranscriptStatus.completed:
            return PollResult(status=COMPLETED, transcript=self._raw(transcript))
        return PollResult(status=str(getattr(transcript.status, "value", transcript.status)))

    def transcribe(self, source: t.MediaSource) -> t.RawTranscript:
        if util.is_youtube(source.locator):
            with tempfile.TemporaryDirectory(prefix="clipline_audio_") as tmp:
                video_id = youtube.extract_video_id(source.locator) or source.media_id
                print(f"[{source.media_id}] Downloading audio...")
                audio = youtube.RealDownloader.download_audio(video_id, Path(tmp))
                print(f"[{source.media_id}] Submitting to AssemblyAI...")
                handle = self.submit(str(audio))
        else:
            print(f"[{source.media_id}] Submitting to AssemblyAI...")
            handle = self.submit(source.locator)
        return wait_for(self, handle, timeout=self._timeout, interval=self._interval)

    def _raw(self, transcript) -> t.RawTranscript:
        segments = [
            t.RawSegment(
                text=utt.text,
                start=utt.start,
                end=utt.end,
                confidence=utt.confidence,
                speaker=utt.speaker,
                words=[
                    {"text": w.text, "start": w.start, "end": w.end, "confidence": w.confidence}
                    for w in (utt.words or [])
                ],
            )
            for utt in (transcript.utterances or [])
        ]
        if not segments and transcript.words:
            segments = self._segments_from_words(transcript.words)
        response = getattr(transcript, "json_response", None) or {}
        language = response.get("language_code")
        return t.RawTranscript(
            segments=segments,
            unit=timestamps.MILLISECONDS,
            duration_seconds=util.to_float(transcript.audio_duration),
            language=str(getattr(language, "value", language) or "en"),
        )

    def _segments_from_words(self, words, max_gap_ms: int = 1500) -> list[t.RawSegment]:
        chunks: list[list] = [[]]
        for w in words:
            if chunks[-1] and w.start - chunks[-1][-1].end > max_gap_ms:
                chunks.append([])
            chunks[-1].append(w)
        segments = []
        for chunk in chunks:
            if not chunk:
                continue
            segments.append(t.RawSegment(
                text=" ".join(w.text for w in chunk).strip(),
                start=chunk[0].start,
                end=chunk[-1].end,
                words=[
                    {"text": w.text, "start": w.start, "end": w.end, "confidence": w.confidence}
                    for w in chunk
                ],
            ))
        return segments


class YouTubeTranscriber:
    def __init__(self, downloader: youtube.Downloader | None = None, language: str = "en"):
        self._downloader = downloader or youtube.RealDownloader()
        self._language = language

    def transcribe(self, source: t.MediaSource) -> t.RawTranscript:
        video_id = youtube.extract_video_id(source.locator) or source.media_id
        print(f"[{source.media_id}] Fetching YouTube captions for {video_id}...")
        cues = self._downloader.captions(video_id, self._language)
        if not cues:
            raise errors.TranscriptionFailed(f"No captions available for YouTube video {video_id}")
        return t.RawTranscript(
            segments=[
                t.RawSegment(text=c.text, start=c.offset_ms, end=c.offset_ms + c.duration_ms)
                for c in cues
            ],
            unit=timestamps.MILLISECONDS,
            language=self._language,
        )


class WhisperTranscriber:
    def __init__(self, model=None):
        self._model = model or runtime.ensure_whisper()

    def transcribe(self, source: t.MediaSource) -> t.RawTranscript:
        if util.is_youtube(source.locator):
            with tempfile.TemporaryDirectory(prefix="clipline_audio_") as tmp:
                video_id = youtube.extract_video_id(source.locator) or source.media_id
                audio = youtube.RealDownloader.download_audio(video_id, Path(tmp))
                return self._transcribe_path(audio)
        return self._transcribe_path(Path(source.locator))

    def _transcribe_path(self, path: Path) -> t.RawTranscript:
        raw_segments, info = self._model.transcribe(str(path), word_timestamps=True)
        duration = info.duration
        segments = []
        for seg in raw_segments:
            segments.append(t.RawSegment(
                text=seg.text.strip(),
                start=seg.start,
                end=seg.end,
                words=[
                    {"text": w.word.strip(), "start": w.start, "end": w.end, "confidence": w.probability}
                    for w in (seg.words or [])
                ],
            ))
            if duration > 0:
                pct = min(seg.end / duration * 100, 100)
                print(f"\r  Transcribing: {pct:.0f}% ({seg.end:.0f}/{duration:.0f}s)", end="", flush=True)
        if duration > 0:
            print()
        return t.RawTranscript(
            segments=segments,
            unit=timestamps.SECONDS,
            duration_seconds=duration or None,
            language=info.language or "en",
        )


class FallbackTranscriber:
    """Tries each transcriber in turn until one returns segments."""

    def __init__(self, transcribers: list[Transcriber]):
        self._transcribers = transcribers

    def transcribe(self, source: t.MediaSource) -> t.RawTranscript:
        last_error: Exception | None = None
        for transcriber in self._transcribers:
            try:
                raw = transcriber.transcribe(source)
            except errors.TranscriptionFailed as exc:
                print(f"[{source.media_id}] {type(transcriber).__name__} failed: {exc}")
                last_error = exc
                continue
            if raw.segments:
                return raw
            print(f"[{source.media_id}] {type(transcriber).__name__} returned no segments")
        if last_error:
            raise last_error
        return t.RawTranscript(segments=[])


def choose(source: t.MediaSource) -> Transcriber:
    if util.is_youtube(source.locator):
        return FallbackTranscriber([YouTubeTranscriber(), AssemblyAITranscriber()])
    return AssemblyAITranscriber()


def for_provider(name: str) -> Transcriber:
    if name == "assemblyai":
        return AssemblyAITranscriber()
    if name == "youtube":
        return YouTubeTranscriber()
    if name == "whisper":
        return WhisperTranscriber()
    raise ValueError(f"Unknown transcription provider: {name}")
