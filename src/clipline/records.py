"""Per-media JSON documents.

Each media source lives in `<media_id>.json` holding its status and its one
transcript. Updates read the document and write a complete new one in its
place (temp file + os.replace) under a lock, so a concurrent retry of the
same job can only ever win or lose as a whole.
"""
import json
import os
import tempfile
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from clipline import assemble, types as t


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Records:
    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @staticmethod
    def valid_id(media_id: str) -> bool:
        return bool(media_id) and "/" not in media_id and "\\" not in media_id and not media_id.startswith(".")

    def _path(self, media_id: str) -> Path:
        if not self.valid_id(media_id):
            raise ValueError(f"Invalid media id: {media_id!r}")
        return self._root / f"{media_id}.json"

    def _read(self, media_id: str) -> dict | None:
        p = self._path(media_id)
        if not p.exists():
            return None
        return json.loads(p.read_text())

    def _write(self, media_id: str, doc: dict):
        path = self._path(media_id)
        doc["updated_at"] = _now()
        fd, tmp = tempfile.mkstemp(dir=self._root, prefix=f".{media_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(doc, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _require(self, media_id: str) -> dict:
        doc = self._read(media_id)
        if doc is None:
            raise KeyError(media_id)
        return doc

    def add(self, source: t.MediaSource) -> t.MediaSource:
        with self._lock:
            self._write(source.media_id, {
                "source": asdict(source),
                "transcript": None,
                "created_at": _now(),
            })
        return source

    def find(self, media_id: str) -> t.MediaSource | None:
        # Ids come from LLM output too; one that can never be stored is just absent.
        if not self.valid_id(media_id):
            return None
        doc = self._read(media_id)
        return t.MediaSource(**doc["source"]) if doc else None

    def get(self, media_id: str) -> t.MediaSource:
        return t.MediaSource(**self._require(media_id)["source"])

    def all(self) -> list[t.MediaSource]:
        return [self.get(p.stem) for p in sorted(self._root.glob("*.json"))]

    def set_status(self, media_id: str, status: str, error: str | None = None) -> t.MediaSource:
        with self._lock:
            doc = self._require(media_id)
            doc["source"] = {**doc["source"], "status": status, "error": error}
            self._write(media_id, doc)
        return t.MediaSource(**doc["source"])

    def replace_transcript(self, media_id: str, transcript: t.Transcript) -> t.MediaSource:
        with self._lock:
            doc = self._require(media_id)
            source = doc["source"]
            doc = {
                **doc,
                "source": {
                    **source,
                    "status": t.TRANSCRIBED,
                    "error": None,
                    "duration_seconds": source.get("duration_seconds") or transcript.duration_seconds,
                },
                "transcript": assemble.to_dict(transcript),
                "transcribed_at": _now(),
            }
            self._write(media_id, doc)
        return t.MediaSource(**doc["source"])

    def transcript(self, media_id: str) -> t.Transcript | None:
        doc = self._require(media_id)
        return assemble.from_dict(doc["transcript"]) if doc.get("transcript") else None

    def locator(self, media_id: str) -> str | None:
        source = self.find(media_id)
        return source.locator if source else None
