import mimetypes
import shutil
from pathlib import Path
from typing import Protocol

from clipline import runtime


class ObjectStore(Protocol):
    def put(self, local_file: Path, key: str) -> str: ...


class S3Store:
    def __init__(self, bucket: str, region: str = "us-east-1", client=None):
        if client is None:
            import boto3
            client = boto3.client("s3", region_name=region)
        self._client = client
        self._bucket = bucket
        self._region = region

    def put(self, local_file: Path, key: str) -> str:
        content_type = mimetypes.guess_type(local_file.name)[0] or "application/octet-stream"
        self._client.upload_file(
            str(local_file), self._bucket, key,
            ExtraArgs={"ContentType": content_type},
        )
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"


class LocalStore:
    def __init__(self, root: Path):
        self._root = root

    def put(self, local_file: Path, key: str) -> str:
        dest = self._root / key
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(local_file, dest)
        return dest.resolve().as_uri()


def from_env() -> ObjectStore:
    if runtime.S3_BUCKET:
        return S3Store(runtime.S3_BUCKET, runtime.S3_REGION)
    if runtime.STORAGE_DIR:
        return LocalStore(Path(runtime.STORAGE_DIR))
    return LocalStore(runtime.home() / "output")
