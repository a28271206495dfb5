from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from clipline import errors, main, storage, timestamps, types as t, youtube
from clipline.schedule import SchedulerConfig


class FakeTranscriber:
    def __init__(self, raw=None, exc=None):
        self.raw = raw
        self.exc = exc

    def transcribe(self, source):
        if self.exc:
            raise self.exc
        return self.raw


class FakeTool:
    def __init__(self):
        self.extracted = []
        self.concatenated = None

    def extract(self, locator, start, end, out):
        self.extracted.append((locator, start, end, out.name))
        out.write_bytes(f"{locator}:{start}-{end}\n".encode())
        return out

    def concatenate(self, paths, out):
        self.concatenated = [p.name for p in paths]
        out.write_bytes(b"".join(p.read_bytes() for p in paths))
        return out


def _raw_ms(*bounds) -> t.RawTranscript:
    return t.RawTranscript(
        segments=[t.RawSegment(text=f"line {i}", start=s, end=e) for i, (s, e) in enumerate(bounds)],
        unit=timestamps.MILLISECONDS,
        duration_seconds=12.5,
    )


def test_transcribe_stores_validated_transcript(records, upload):
    upload("duck", duration=10.0)
    raw = _raw_ms((500, 2000), (5000, 4000), (9000, 15000))

    transcript = main.transcribe("duck", records, FakeTranscriber(raw))

    assert [(s.start, s.end) for s in transcript.segments] == [(0.5, 2.0), (5.0, 6.0), (9.0, 10.0)]
    assert transcript.duration_seconds == 12.5
    assert records.get("duck").status == t.TRANSCRIBED
    assert records.transcript("duck").text == "line 0 line 1 line 2"


def test_empty_transcript_marks_source_failed(records, upload):
    upload("duck")
    with pytest.raises(errors.EmptyTranscript):
        main.transcribe("duck", records, FakeTranscriber(t.RawTranscript(segments=[])))
    source = records.get("duck")
    assert source.status == t.FAILED
    assert source.error.startswith("EmptyTranscript")
    assert records.transcript("duck") is None


def test_timeout_marks_source_failed_and_keeps_old_transcript(records, upload):
    upload("duck")
    main.transcribe("duck", records, FakeTranscriber(_raw_ms((500, 2000))))

    with pytest.raises(errors.TranscriptionTimeout):
        main.transcribe("duck", records, FakeTranscriber(exc=errors.TranscriptionTimeout("tx-1", 600)))

    source = records.get("duck")
    assert source.status == t.FAILED
    assert "did not finish" in source.error
    assert len(records.transcript("duck").segments) == 1


def test_ingest_upload(records, tmp_dir):
    video = tmp_dir / "duck_and_cover.mp4"
    video.write_bytes(b"\x00" * 64)
    with patch.object(main.media, "probe_duration", return_value=545.2), \
         patch.object(main.media, "thumbnail", return_value=None):
        source = main.ingest(str(video), records, media_id="duck")

    assert source.origin == t.UPLOAD
    assert source.duration_seconds == 545.2
    assert source.title == "duck_and_cover"
    assert records.get("duck").locator == str(video.resolve())


def test_ingest_rejects_missing_and_empty_files(records, tmp_dir):
    with pytest.raises(FileNotFoundError):
        main.ingest(str(tmp_dir / "nope.mp4"), records)
    empty = tmp_dir / "empty.mp4"
    empty.touch()
    with pytest.raises(ValueError):
        main.ingest(str(empty), records)


def test_ingest_youtube_uses_metadata(records):
    downloader = MagicMock()
    downloader.metadata.return_value = youtube.Metadata(title="Duck and Cover", author="FCDA", duration_seconds=545.0)

    source = main.ingest("https://www.youtube.com/watch?v=IKqXu-5jw60", records, downloader=downloader)

    downloader.metadata.assert_called_once_with("IKqXu-5jw60")
    assert source.media_id == "IKqXu-5jw60"
    assert source.origin == t.REMOTE
    assert source.title == "Duck and Cover"
    assert source.duration_seconds == 545.0


def test_select_clips_skips_sources_without_transcripts(records, upload):
    upload("duck")
    upload("flash")
    main.transcribe("duck", records, FakeTranscriber(_raw_ms((500, 2000))))
    selector = MagicMock()
    selector.select.return_value = [t.ClipCandidate(video_id="duck", start=0.5, end=2.0)]

    candidates = main.select_clips(["duck", "flash"], records, selector, "civil defense")

    transcripts, prompt = selector.select.call_args.args
    assert [tr.media_id for tr in transcripts] == ["duck"]
    assert prompt == "civil defense"
    assert len(candidates) == 1


def test_select_clips_without_transcripts_skips_llm(records, upload):
    upload("duck")
    selector = MagicMock()
    assert main.select_clips(["duck"], records, selector) == []
    selector.select.assert_not_called()


def test_render_runs_plan_and_stores_result(records, upload, tmp_dir):
    upload("duck", duration=60.0)
    upload("flash", duration=30.0)
    candidates = [
        t.ClipCandidate(video_id="duck", start=10.0, end=11.0, text="Duck and cover."),
        t.ClipCandidate(video_id="ghost", start=1.0, end=5.0),
        t.ClipCandidate(video_id="flash", start=1.0, end=2.0),
        t.ClipCandidate(video_id="duck", start=13.2, end=14.2),
    ]
    tool = FakeTool()
    workroot = tmp_dir / "work"
    workroot.mkdir()

    result = main.render(
        candidates, records, store=storage.LocalStore(tmp_dir / "out"), tool=tool,
        config=SchedulerConfig(), job_id="job1", workroot=workroot,
    )

    assert [(e[1], e[2]) for e in tool.extracted] == [(8.0, 13.0), (1.0, 4.0), (13.5, 16.2)]
    assert tool.concatenated == ["clip_00000.mp4", "clip_00001.mp4", "clip_00002.mp4"]
    assert [r.reason for r in result.schedule.rejections] == ["unknown-source"]
    assert result.duration == 10.7
    stored = tmp_dir / "out" / "merged-videos" / "merged_job1.mp4"
    assert result.url == stored.resolve().as_uri()
    assert stored.read_bytes().startswith(str(tmp_dir).encode())
    assert list(workroot.iterdir()) == []


def test_render_drops_ids_that_cannot_name_a_source(records, upload, tmp_dir):
    upload("duck")
    candidates = [
        t.ClipCandidate(video_id="duck", start=10.0, end=11.0),
        t.ClipCandidate(video_id="https://youtu.be/abc", start=1.0, end=2.0),
        t.ClipCandidate(video_id="../duck", start=20.0, end=21.0),
        t.ClipCandidate(video_id="", start=30.0, end=31.0),
    ]
    tool = FakeTool()

    result = main.render(candidates, records, store=storage.LocalStore(tmp_dir / "out"),
                         tool=tool, config=SchedulerConfig())

    assert [(c.video_id, c.start, c.end) for c in result.schedule.clips] == [("duck", 8.0, 13.0)]
    assert [(r.candidate_index, r.reason) for r in result.schedule.rejections] == [
        (1, "unknown-source"), (2, "unknown-source"), (3, "unknown-source"),
    ]
    assert len(tool.extracted) == 1


def test_render_fails_when_upload_is_missing(records, upload, tmp_dir):
    source = upload("duck")
    Path(source.locator).unlink()
    workroot = tmp_dir / "work"
    workroot.mkdir()

    with pytest.raises(errors.UnresolvedSource):
        main.render([t.ClipCandidate(video_id="duck", start=10.0, end=11.0)], records,
                    store=storage.LocalStore(tmp_dir / "out"), tool=FakeTool(),
                    config=SchedulerConfig(), workroot=workroot)
    assert list(workroot.iterdir()) == []


def test_render_with_nothing_schedulable_fails(records, upload, tmp_dir):
    upload("duck")
    tool = FakeTool()
    with pytest.raises(errors.ClipError):
        main.render([t.ClipCandidate(video_id="ghost", start=1.0, end=2.0)], records,
                    store=storage.LocalStore(tmp_dir / "out"), tool=tool, config=SchedulerConfig())
    assert tool.extracted == []


def test_render_downloads_youtube_sources(records, tmp_dir):
    records.add(t.MediaSource(media_id="IKqXu-5jw60", origin=t.REMOTE,
                              locator="https://www.youtube.com/watch?v=IKqXu-5jw60",
                              duration_seconds=545.0, status=t.TRANSCRIBED))

    def download_video(video_id, download_dir):
        path = download_dir / f"{video_id}.mp4"
        path.write_bytes(b"video")
        return path

    downloader = SimpleNamespace(download_video=MagicMock(side_effect=download_video))
    tool = FakeTool()
    main.render([t.ClipCandidate(video_id="IKqXu-5jw60", start=10.0, end=11.0)], records,
                store=storage.LocalStore(tmp_dir / "out"), tool=tool,
                config=SchedulerConfig(), downloader=downloader)

    downloader.download_video.assert_called_once()
    assert tool.extracted[0][0].endswith("IKqXu-5jw60.mp4")
