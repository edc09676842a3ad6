"""
Blob Storage
============

Binary document storage keyed by owner-prefixed paths:

    <owner_id>/<timestamp_ms>-<random>.<ext>

`LocalBlobStore` keeps blobs on the local filesystem under STORAGE_ROOT.
Any object with the same `upload` / `download` / `delete` methods can be
injected in its place.
"""

import logging
import os
import secrets
import time
from pathlib import Path
from typing import Optional, Protocol

from .config import get_settings
from .errors import StorageError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    """Interface the pipeline depends on"""

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        ...

    def download(self, ref: str) -> bytes:
        ...

    def delete(self, ref: str) -> None:
        ...


def generate_key(owner_id: str, filename: str) -> str:
    """Build a unique owner-prefixed storage key for an uploaded file"""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    random_part = secrets.token_hex(4)
    return f"{owner_id}/{int(time.time() * 1000)}-{random_part}.{ext}"


class LocalBlobStore:
    """Filesystem-backed blob store"""

    def __init__(self, root: str):
        self.root = Path(root)

    def _resolve(self, ref: str) -> Path:
        normalized = ref.replace("\\", "/").lstrip("/")
        target = (self.root / normalized).resolve()
        root = self.root.resolve()

        if not str(target).startswith(str(root) + os.sep):
            raise StorageError(f"Storage key escapes storage root: {ref}")
        return target

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Storage key already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to upload {path}: {e}") from e

        logger.info("Stored blob key=%s size=%d type=%s", path, len(data), content_type)
        return path

    def download(self, ref: str) -> bytes:
        target = self._resolve(ref)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError("Failed to download document") from e

    def delete(self, ref: str) -> None:
        target = self._resolve(ref)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("Blob already missing on delete: %s", ref)
        except OSError as e:
            raise StorageError(f"Failed to delete {ref}: {e}") from e

    def exists(self, ref: str) -> bool:
        return self._resolve(ref).is_file()


# Singleton
_storage: Optional[LocalBlobStore] = None


def get_storage() -> LocalBlobStore:
    """Get singleton blob store rooted at STORAGE_ROOT"""
    global _storage
    root = get_settings().storage_root
    if _storage is None or str(_storage.root) != str(Path(root)):
        _storage = LocalBlobStore(root)
    return _storage
