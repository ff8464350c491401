"""Bucketed file storage on the local filesystem.

Objects live at ``MEDIA_ROOT/<bucket>/<owner>/<timestamp>_<rand>_<name>`` and
are served back under ``MEDIA_BASE_URL``. Names are never reused, so an
upload never replaces an existing object.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from .config import settings
from .constants import BUCKETS
from .utils.validation import validate_upload


logger = logging.getLogger("fleetmarket.storage")

_SAFE = re.compile(r"[^A-Za-z0-9._-]+")


class UploadRejected(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


@dataclass
class StoredObject:
    bucket: str
    path: str
    url: str
    size: int
    content_type: str


def check_upload(bucket: str, content_type: str | None, size: int) -> None:
    kind = BUCKETS.get(bucket)
    if kind is None:
        raise UploadRejected(404, "Unknown bucket")
    limit = settings.MAX_VIDEO_BYTES if kind == "video" else settings.MAX_IMAGE_BYTES
    rejected = validate_upload(content_type, size, kind, limit)
    if rejected:
        raise UploadRejected(*rejected)


def _safe_segment(value: str) -> str:
    cleaned = _SAFE.sub("_", value).strip("._")
    return cleaned or "file"


class MediaStorage:
    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _bucket_dir(self, bucket: str) -> Path:
        if bucket not in BUCKETS:
            raise UploadRejected(404, "Unknown bucket")
        return self.root / bucket

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def upload(self, bucket: str, owner: str, filename: str, data: bytes, content_type: str | None) -> StoredObject:
        check_upload(bucket, content_type, len(data))
        owner_dir = _safe_segment(owner)
        name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{_safe_segment(Path(filename or 'upload').name)}"
        target = self._bucket_dir(bucket) / owner_dir / name
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "xb") as fh:
            fh.write(data)
        rel = f"{owner_dir}/{name}"
        logger.info("stored %s/%s (%d bytes)", bucket, rel, len(data))
        return StoredObject(bucket=bucket, path=rel, url=self.public_url(bucket, rel), size=len(data), content_type=content_type or "")

    def resolve(self, bucket: str, path: str) -> Path:
        base = self._bucket_dir(bucket).resolve()
        target = (base / path).resolve()
        if base not in target.parents:
            raise UploadRejected(400, "Invalid path")
        return target

    def remove(self, bucket: str, path: str) -> bool:
        target = self.resolve(bucket, path)
        if not target.is_file():
            return False
        target.unlink()
        logger.info("removed %s/%s", bucket, path)
        return True

    def path_from_url(self, bucket: str, url: str) -> str | None:
        prefix = f"{self.base_url}/{bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None


storage = MediaStorage(settings.MEDIA_ROOT, settings.MEDIA_BASE_URL)
