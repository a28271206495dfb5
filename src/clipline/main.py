import tempfile
import time
import uuid
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from clipline import (
    assemble, errors, media, plan, schedule, selection, storage,
    transcribe as tr, types as t, util, validate, youtube,
)
from clipline.records import Records


def ingest(
    locator: str,
    records: Records,
    media_id: str | None = None,
    title: str | None = None,
    thumbnails_dir: Path | None = None,
    downloader: youtube.Downloader | None = None,
) -> t.MediaSource:
    if util.is_url(locator):
        origin = t.REMOTE
        if util.is_youtube(locator):
            video_id = youtube.extract_video_id(locator)
            if not video_id:
                raise ValueError(f"Cannot find a YouTube video id in {locator}")
            meta = (downloader or youtube.RealDownloader()).metadata(video_id)
            duration = meta.duration_seconds or None
            title = title or meta.title
            mid = media_id or video_id
        else:
            duration = media.probe_duration(locator)
            mid = media_id or uuid.uuid4().hex[:12]
        thumb = ""
    else:
        origin = t.UPLOAD
        path = Path(locator).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Video file not found at: {path}")
        if path.stat().st_size == 0:
            raise ValueError(f"File exists but is empty (0 bytes): {path}")
        locator = str(path)
        mid = media_id or uuid.uuid4().hex[:12]
        duration = media.probe_duration(locator)
        thumb_path = None
        if thumbnails_dir:
            thumb_path = media.thumbnail(path, thumbnails_dir / f"{mid}.jpg",
                                         at_seconds=duration / 2 if duration else 0.0)
        thumb = str(thumb_path) if thumb_path else ""

    source = t.MediaSource(
        media_id=mid,
        origin=origin,
        locator=locator,
        duration_seconds=duration,
        status=t.INGESTED,
        title=title or Path(locator).stem,
        thumbnail_path=thumb,
    )
    records.add(source)
    print(f"[{mid}] Ingested {origin} ({duration or 'unknown'}s): {locator}")
    return source


def transcribe(media_id: str, records: Records, transcriber: tr.Transcriber) -> t.Transcript:
    """Transcribes one media source and replaces its stored transcript.

    Any failure marks the source failed with the reason and re-raises.
    """
    source = records.set_status(media_id, t.TRANSCRIBING)
    t0 = time.monotonic()
    try:
        raw = transcriber.transcribe(source)
        segments, diagnostics = validate.validate_segments(
            raw.segments, source.duration_seconds, raw.unit,
        )
        if diagnostics:
            counts = Counter(d.kind for d in diagnostics)
            summary = ", ".join(f"{n} {kind}" for kind, n in sorted(counts.items()))
            print(f"[{media_id}] Segment corrections: {summary}")
        transcript = assemble.assemble(media_id, segments, raw.duration_seconds, raw.language)
        if transcript.is_empty:
            raise errors.EmptyTranscript(media_id)
    except Exception as exc:
        records.set_status(media_id, t.FAILED, error=f"{type(exc).__name__}: {exc}")
        print(f"[{media_id}] FAILED: {exc}")
        raise
    records.replace_transcript(media_id, transcript)
    print(f"[{media_id}] Transcribed in {time.monotonic() - t0:.0f}s "
          f"({len(transcript.segments)} segments, {transcript.duration_seconds:.1f}s)")
    return transcript


def select_clips(
    media_ids: Sequence[str],
    records: Records,
    selector: selection.ClaudeSelector,
    prompt: str | None = None,
) -> list[t.ClipCandidate]:
    transcripts = []
    for mid in media_ids:
        transcript = records.transcript(mid)
        if transcript is None or transcript.is_empty:
            print(f"[{mid}] No transcript, leaving it out of selection")
            continue
        transcripts.append(transcript)
    if not transcripts:
        return []
    candidates = selector.select(transcripts, prompt)
    print(f"[select] {len(candidates)} clip candidates from {len(transcripts)} transcripts")
    return candidates


@dataclass
class RenderResult:
    job_id: str
    url: str
    plan: t.RenderPlan
    schedule: t.ScheduleResult
    duration: float


def _resolver(records: Records, workdir: Path, downloader: youtube.Downloader | None) -> plan.Resolver:
    def resolve(video_id: str) -> str | None:
        source = records.find(video_id)
        if source is None:
            return None
        if source.origin == t.UPLOAD:
            return source.locator if Path(source.locator).is_file() else None
        if util.is_youtube(source.locator):
            yt_id = youtube.extract_video_id(source.locator) or video_id
            print(f"[{video_id}] Downloading video for extraction...")
            return str((downloader or youtube.RealDownloader()).download_video(yt_id, workdir))
        return source.locator

    return resolve


def render(
    candidates: Sequence[t.ClipCandidate],
    records: Records,
    store: storage.ObjectStore | None = None,
    tool: media.MediaTool | None = None,
    config: schedule.SchedulerConfig | None = None,
    job_id: str | None = None,
    workroot: Path | None = None,
    downloader: youtube.Downloader | None = None,
) -> RenderResult:
    job_id = job_id or uuid.uuid4().hex
    store = store or storage.from_env()
    tool = tool or media.FFmpegTool()

    sources = {}
    for c in candidates:
        source = records.find(c.video_id) if c.video_id else None
        if source is not None:
            sources[c.video_id] = source
    scheduled = schedule.schedule(candidates, sources, config or schedule.SchedulerConfig.from_env())
    print(f"[{job_id}] Scheduled {len(scheduled.clips)}/{len(candidates)} clips "
          f"({len(scheduled.rejections)} dropped)")
    if not scheduled.clips:
        raise errors.ClipError("No clips left to render after scheduling")

    t0 = time.monotonic()
    try:
        with tempfile.TemporaryDirectory(prefix=f"clipline_{job_id}_", dir=workroot) as tmp:
            workdir = Path(tmp)
            render_plan = plan.build_plan(scheduled.clips, _resolver(records, workdir, downloader))
            output = workdir / f"merged_{job_id}.mp4"
            media.render(render_plan, tool, workdir / "clips", output)
            url = store.put(output, f"merged-videos/{output.name}")
    except Exception as exc:
        print(f"[{job_id}] FAILED: {exc}")
        raise
    print(f"[{job_id}] Rendered {render_plan.total_duration:.1f}s in {time.monotonic() - t0:.0f}s -> {url}")
    return RenderResult(
        job_id=job_id,
        url=url,
        plan=render_plan,
        schedule=scheduled,
        duration=render_plan.total_duration,
    )
