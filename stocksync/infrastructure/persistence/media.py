"""Media download and storage utilities.

Listing photos are streamed into a temporary file and only moved into the
media directory once the whole body has been received. A failed transfer
leaves no file behind.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import httpx

from stocksync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadedMedia:
    local_path: str
    content_type: str
    size_bytes: int
    sha256: str


class MediaDownloader:
    """Downloads media files and stores them by content hash.

    Files are stored as ``{media_dir}/{sha[:2]}/{sha}{ext}``.
    """

    EXTENSIONS = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
        "image/gif": ".gif",
    }

    def __init__(
        self,
        media_dir: str | Path,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.media_dir = Path(media_dir)
        self.timeout = timeout
        self._client = client

    def _get_local_path(self, sha256: str, content_type: str | None) -> Path:
        ext = self.EXTENSIONS.get(content_type or "", ".jpg")
        return self.media_dir / sha256[:2] / f"{sha256}{ext}"

    @contextmanager
    def _stream(self, url: str) -> Iterator[httpx.Response]:
        if self._client is not None:
            with self._client.stream("GET", url, follow_redirects=True) as response:
                yield response
            return
        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            with client.stream("GET", url) as response:
                yield response

    def download(self, url: str) -> tuple[DownloadedMedia | None, str | None]:
        """Download ``url`` once.

        Returns:
            Tuple of (media, error_message).
            On success: (DownloadedMedia, None)
            On failure: (None, error_message)
        """
        try:
            with self._stream(url) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type", "image/jpeg")
                content_type = content_type.split(";")[0].strip() or "image/jpeg"
                media = self._persist(response, content_type)
        except httpx.HTTPStatusError as e:
            error = f"HTTP {e.response.status_code}"
            logger.warning("Failed to download media %s: %s", url, error)
            return None, error
        except httpx.RequestError as e:
            logger.warning("Failed to download media %s: %s", url, e)
            return None, str(e) or e.__class__.__name__
        except OSError as e:
            logger.error("Failed to store media from %s: %s", url, e)
            return None, f"Storage error: {e}"

        if media is None:
            return None, "Empty response body"
        return media, None

    def _persist(self, response: httpx.Response, content_type: str) -> DownloadedMedia | None:
        """Write the body to a temporary file, hashing it on the way."""
        self.media_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".download-", dir=self.media_dir)
        digest = hashlib.sha256()
        size = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    digest.update(chunk)
                    size += len(chunk)
                    f.write(chunk)
            if size == 0:
                os.unlink(tmp_name)
                return None
            sha256 = digest.hexdigest()
            local_path = self._get_local_path(sha256, content_type)
            local_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(tmp_name, local_path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Stored media %s (%d bytes)", local_path, size)
        return DownloadedMedia(
            local_path=str(local_path),
            content_type=content_type,
            size_bytes=size,
            sha256=sha256,
        )


__all__ = ["DownloadedMedia", "MediaDownloader"]
