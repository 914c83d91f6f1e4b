"""Attach listing photos, downloading each source URL at most once."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol
from urllib.parse import urlparse

from stocksync.infrastructure.db.repositories import MediaAsset
from stocksync.infrastructure.observability.logging import get_logger
from stocksync.infrastructure.persistence.media import DownloadedMedia

from .errors import MediaError
from .mapper import strip_resize_placeholder

logger = get_logger(__name__)

DEFAULT_DOWNLOAD_DELAY_SECONDS = 0.2


class ListingMediaStore(Protocol):
    def get_primary_media(self, listing_id: int) -> int | None: ...

    def get_gallery(self, listing_id: int) -> list[int]: ...

    def attach_media(self, listing_id: int, asset_id: int, is_primary: bool = False) -> None: ...

    def set_gallery(self, listing_id: int, asset_ids: Iterable[int]) -> None: ...

    def clear_primary(self, listing_id: int) -> None: ...


class MediaStore(Protocol):
    def find_by_source_url(self, source_url: str) -> MediaAsset | None: ...

    def create(self, source_url: str, local_path: str, **kwargs) -> int: ...


class Downloader(Protocol):
    def download(self, url: str) -> tuple[DownloadedMedia | None, str | None]: ...


@dataclass
class MediaIngestResult:
    attached_ids: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    primary_id: int | None = None


def normalize_url(ref: str) -> str:
    return strip_resize_placeholder(ref.strip())


def is_valid_url(url: str) -> bool:
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class MediaIngester:
    """Resolves media references to stored assets and wires them to a listing.

    The first resolved asset becomes the primary image only when the listing
    has none. The gallery becomes the union of the existing gallery and the
    newly resolved assets. When nothing resolves, the gallery is cleared.
    """

    def __init__(
        self,
        listings: ListingMediaStore,
        media: MediaStore,
        downloader: Downloader,
        *,
        download_delay: float = DEFAULT_DOWNLOAD_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.listings = listings
        self.media = media
        self.downloader = downloader
        self.download_delay = download_delay
        self._sleep = sleep
        self._downloads = 0

    def ingest(self, listing_id: int, media_refs: Iterable[str]) -> MediaIngestResult:
        result = MediaIngestResult()
        primary_id = self.listings.get_primary_media(listing_id)
        had_primary = primary_id is not None

        for ref in media_refs:
            try:
                asset_id = self._resolve(ref, listing_id)
            except MediaError as exc:
                result.errors.append(str(exc))
                continue
            if asset_id in result.attached_ids:
                continue
            result.attached_ids.append(asset_id)
            if primary_id is None:
                self.listings.attach_media(listing_id, asset_id, is_primary=True)
                primary_id = asset_id

        if result.attached_ids:
            gallery = self.listings.get_gallery(listing_id)
            self.listings.set_gallery(
                listing_id, gallery + [a for a in result.attached_ids if a not in gallery]
            )
        else:
            self.listings.set_gallery(listing_id, [])
            if not had_primary:
                self.listings.clear_primary(listing_id)

        result.primary_id = primary_id
        if result.errors:
            logger.warning(
                "Listing %s: %d media error(s), %d asset(s) attached",
                listing_id,
                len(result.errors),
                len(result.attached_ids),
            )
        return result

    def _resolve(self, ref: str, listing_id: int) -> int:
        url = normalize_url(ref or "")
        if not is_valid_url(url):
            raise MediaError(url, f"Invalid image URL: {ref!r}")

        existing = self.media.find_by_source_url(url)
        if existing is not None:
            logger.debug("Reusing media asset %s for %s", existing.id, url)
            return existing.id

        if self._downloads and self.download_delay > 0:
            self._sleep(self.download_delay)
        self._downloads += 1

        downloaded, error = self.downloader.download(url)
        if downloaded is None:
            raise MediaError(url, f"Failed to download {url}: {error or 'unknown error'}")
        try:
            return self.media.create(
                url,
                downloaded.local_path,
                content_type=downloaded.content_type,
                size_bytes=downloaded.size_bytes,
                sha256=downloaded.sha256,
                owner_listing_id=listing_id,
            )
        except sqlite3.Error as exc:
            raise MediaError(url, f"Failed to store {url}: {exc}") from exc
