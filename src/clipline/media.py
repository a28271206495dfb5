import subprocess
from pathlib import Path
from typing import Protocol, Sequence

from clipline import errors, runtime, types as t

WIDTH = 1280
HEIGHT = 720
FPS = 30

# Every extracted clip gets the same geometry and codecs so the concat demuxer can stream-copy them.
NORMALIZE_FILTER = (
    f"scale={WIDTH}:{HEIGHT}:force_original_aspect_ratio=decrease,"
    f"pad={WIDTH}:{HEIGHT}:(ow-iw)/2:(oh-ih)/2,setsar=1,fps={FPS}"
)
ENCODE_ARGS = [
    "-c:v", "libx264", "-preset", "fast", "-crf", "22", "-pix_fmt", "yuv420p",
    "-c:a", "aac", "-b:a", "128k", "-ar", "44100", "-ac", "2",
    "-movflags", "+faststart", "-max_muxing_queue_size", "1024",
]


class MediaTool(Protocol):
    def extract(self, locator: str, start: float, end: float, out: Path) -> Path: ...
    def concatenate(self, paths: Sequence[Path], out: Path) -> Path: ...


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


def _run(cmd: list[str], timeout: float, description: str) -> subprocess.CompletedProcess:
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise errors.MediaToolTimeout(
            f"{description} killed after {timeout:.0f}s",
            cmd=cmd, stdout=_text(exc.stdout), stderr=_text(exc.stderr),
        ) from exc
    if result.returncode != 0:
        raise errors.MediaToolError(
            f"{description} failed with exit code {result.returncode}",
            cmd=cmd, stdout=result.stdout, stderr=result.stderr,
        )
    return result


def probe_duration(locator: str, timeout: float = 60) -> float | None:
    try:
        result = _run(
            ["ffprobe", "-v", "error", "-show_entries", "format=duration",
             "-of", "default=noprint_wrappers=1:nokey=1", locator],
            timeout, "ffprobe",
        )
    except errors.MediaToolError as exc:
        print(f"  ffprobe failed for {locator}: {exc.stderr.strip()}")
        return None
    try:
        return round(float(result.stdout.strip()), 3)
    except ValueError:
        return None


def thumbnail(video_path: Path, out: Path, at_seconds: float | None = None) -> Path | None:
    out.parent.mkdir(parents=True, exist_ok=True)
    if at_seconds is None:
        duration = probe_duration(str(video_path))
        at_seconds = duration / 2 if duration else 0.0
    result = subprocess.run(
        ["ffmpeg", "-ss", str(at_seconds), "-i", str(video_path),
         "-frames:v", "1", "-q:v", "2", "-vf", "scale=640:-2", "-y", str(out)],
        capture_output=True,
    )
    if result.returncode != 0 or not out.exists() or out.stat().st_size == 0:
        out.unlink(missing_ok=True)
        return None
    return out


class FFmpegTool:
    def __init__(self, timeout: float = runtime.FFMPEG_TIMEOUT, binary: str = "ffmpeg"):
        self._timeout = timeout
        self._binary = binary

    def extract(self, locator: str, start: float, end: float, out: Path) -> Path:
        cmd = [
            self._binary, "-ss", f"{start:.2f}", "-i", locator, "-t", f"{end - start:.2f}",
            "-vf", NORMALIZE_FILTER, *ENCODE_ARGS, "-y", str(out),
        ]
        _run(cmd, self._timeout, f"Extracting {start:.2f}-{end:.2f} from {locator}")
        return out

    def concatenate(self, paths: Sequence[Path], out: Path) -> Path:
        list_path = out.parent / f"{out.stem}.concat.txt"
        list_path.write_text("".join(f"file '{p.resolve()}'\n" for p in paths))
        cmd = [
            self._binary, "-f", "concat", "-safe", "0", "-i", str(list_path),
            "-c", "copy", "-movflags", "+faststart", "-y", str(out),
        ]
        try:
            _run(cmd, self._timeout, f"Concatenating {len(paths)} clips")
        finally:
            list_path.unlink(missing_ok=True)
        return out


def render(plan: t.RenderPlan, tool: MediaTool, workdir: Path, output: Path) -> Path:
    """Runs the plan one clip at a time, then joins the clips in sequence order."""
    workdir.mkdir(parents=True, exist_ok=True)
    total = len(plan.extractions)
    for idx, e in enumerate(plan.extractions):
        print(f"\r  Extracting clips: {idx + 1}/{total}", end="", flush=True)
        tool.extract(e.locator, e.start, e.end, workdir / e.output_name)
    if total > 0:
        print()
    return tool.concatenate([workdir / name for name in plan.concat_order], output)
