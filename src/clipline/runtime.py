import os
import shutil
import sys
from pathlib import Path

HOME = Path(os.environ.get("CLIPLINE_HOME", Path.home() / ".cache" / "clipline"))
WHISPER_MODEL = os.environ.get("CLIPLINE_WHISPER_MODEL", "large-v3")
LLM_MODEL = os.environ.get("CLIPLINE_LLM_MODEL", "claude-sonnet-4-5-20250929")
LLM_MIN_INTERVAL = float(os.environ.get("CLIPLINE_LLM_MIN_INTERVAL", "1.0"))
POLL_TIMEOUT = float(os.environ.get("CLIPLINE_POLL_TIMEOUT", "600"))
POLL_INTERVAL = float(os.environ.get("CLIPLINE_POLL_INTERVAL", "5"))
FFMPEG_TIMEOUT = float(os.environ.get("CLIPLINE_FFMPEG_TIMEOUT", "1800"))
S3_BUCKET = os.environ.get("CLIPLINE_S3_BUCKET", "")
S3_REGION = os.environ.get("CLIPLINE_S3_REGION", "us-east-1")
STORAGE_DIR = os.environ.get("CLIPLINE_STORAGE_DIR", "")


def home() -> Path:
    HOME.mkdir(parents=True, exist_ok=True)
    return HOME


def records_dir() -> Path:
    d = home() / "records"
    d.mkdir(parents=True, exist_ok=True)
    return d


def whisper_cache() -> Path:
    d = home() / "whisper"
    d.mkdir(parents=True, exist_ok=True)
    return d


def _check_binary(name: str) -> bool:
    return shutil.which(name) is not None


def _check_key(name: str) -> bool:
    return bool(os.environ.get(name))


def check(
    needs_ffmpeg: bool = False, needs_anthropic: bool = False,
    needs_assemblyai: bool = False,
) -> list[str]:
    errors = []

    if needs_ffmpeg:
        for binary in ("ffmpeg", "ffprobe"):
            if not _check_binary(binary):
                errors.append(f"{binary} not found in PATH: install from https://ffmpeg.org/")

    if needs_anthropic and not _check_key("ANTHROPIC_API_KEY"):
        errors.append("ANTHROPIC_API_KEY not set, add it to .env or export it")

    if needs_assemblyai and not _check_key("ASSEMBLYAI_API_KEY"):
        errors.append("ASSEMBLYAI_API_KEY not set, add it to .env or export it")

    return errors


def require(
    needs_ffmpeg: bool = False, needs_anthropic: bool = False,
    needs_assemblyai: bool = False,
):
    errors = check(
        needs_ffmpeg=needs_ffmpeg, needs_anthropic=needs_anthropic,
        needs_assemblyai=needs_assemblyai,
    )
    if errors:
        print("Missing requirements:", file=sys.stderr)
        for e in errors:
            print(f"  - {e}", file=sys.stderr)
        sys.exit(1)


def ensure_whisper():
    from faster_whisper import WhisperModel
    d = whisper_cache()
    print(f"Loading Whisper {WHISPER_MODEL} (cache: {d})")
    return WhisperModel(WHISPER_MODEL, device="auto", compute_type="auto", download_root=str(d))
