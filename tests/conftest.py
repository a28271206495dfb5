import pathlib
import tempfile

import dotenv
import pytest

from clipline import types as t
from clipline.records import Records

dotenv.load_dotenv(pathlib.Path(__file__).parent.parent / ".env")

DATA_DIR = pathlib.Path(__file__).parent.parent / "data" / "sample"


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield pathlib.Path(tmp)


@pytest.fixture
def records(tmp_dir):
    return Records(tmp_dir / "records")


@pytest.fixture
def upload(records, tmp_dir):
    def _upload(media_id: str, duration: float | None = 60.0) -> t.MediaSource:
        path = tmp_dir / f"{media_id}.mp4"
        path.write_bytes(b"\x00\x00\x00\x1cftypisom")
        return records.add(t.MediaSource(
            media_id=media_id, origin=t.UPLOAD, locator=str(path),
            duration_seconds=duration, status=t.INGESTED, title=media_id,
        ))
    return _upload


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def sample_video(data_dir):
    path = data_dir / "KnifeThr1950_512kb.mp4"
    if not path.exists():
        pytest.skip("data/sample/KnifeThr1950_512kb.mp4 not found")
    return path
