"""
Salesdocs Documents - Blob Store
================================
Persists rendered artifacts and serves them by an opaque file id.

Doctrine:
- The lifecycle stores only the file id; bytes live here.
- Stored blobs are never overwritten. A failed commit may leave an
  orphaned blob behind; that is accepted collateral.
- URLs are built from the configured base URL, never hard-coded.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from core.time.clock import Clock, SystemClock

URL_MODE_VIEW = "view"
URL_MODE_DOWNLOAD = "download"
VALID_URL_MODES = frozenset({URL_MODE_VIEW, URL_MODE_DOWNLOAD})


class BlobStore(Protocol):
    def store(self, artifact: bytes, file_name: str) -> str:
        """Persist artifact bytes and return an opaque file id."""
        ...

    def url_for(self, file_id: str, mode: str = URL_MODE_VIEW) -> str:
        """Return a view or download URL for file_id."""
        ...


@dataclass(frozen=True)
class StoredBlob:
    file_id: str
    file_name: str
    content: bytes
    stored_at: datetime

    @property
    def size(self) -> int:
        return len(self.content)


def build_blob_url(base_url: str, file_id: str, mode: str) -> str:
    if mode not in VALID_URL_MODES:
        raise ValueError(f"mode must be one of {sorted(VALID_URL_MODES)}, got {mode!r}.")
    url = f"{base_url.rstrip('/')}/{file_id}"
    if mode == URL_MODE_DOWNLOAD:
        return f"{url}?download=1"
    return url


class InMemoryBlobStore:
    """Thread-safe in-memory blob store for tests and bootstrap."""

    def __init__(self, base_url: str = "http://localhost:8000/blobs", clock: Optional[Clock] = None):
        self._base_url = base_url
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._blobs: dict[str, StoredBlob] = {}

    def store(self, artifact: bytes, file_name: str) -> str:
        if not isinstance(artifact, (bytes, bytearray)) or not artifact:
            raise ValueError("artifact must be non-empty bytes.")
        if not file_name:
            raise ValueError("file_name must be a non-empty string.")
        file_id = uuid.uuid4().hex
        with self._lock:
            self._blobs[file_id] = StoredBlob(
                file_id=file_id,
                file_name=file_name,
                content=bytes(artifact),
                stored_at=self._clock.now_utc(),
            )
        return file_id

    def url_for(self, file_id: str, mode: str = URL_MODE_VIEW) -> str:
        with self._lock:
            if file_id not in self._blobs:
                raise KeyError(f"Unknown blob: {file_id}")
        return build_blob_url(self._base_url, file_id, mode)

    def get(self, file_id: str) -> Optional[StoredBlob]:
        with self._lock:
            return self._blobs.get(file_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)
