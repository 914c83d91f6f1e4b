from fakes import FakeDownloader

from stocksync.domain.models import ListingAttributes
from stocksync.infrastructure.db.repositories import (ListingRepository,
                                                      MediaRepository)
from stocksync.services.sync import MediaIngester


def _setup(conn, tmp_path, failures=None, sleep=None):
    listings = ListingRepository(conn)
    media = MediaRepository(conn)
    downloader = FakeDownloader(tmp_path / "media", failures=failures)
    kwargs = {"download_delay": 0}
    if sleep is not None:
        kwargs = {"download_delay": 0.2, "sleep": sleep}
    ingester = MediaIngester(listings, media, downloader, **kwargs)
    return listings, media, downloader, ingester


def _listing(listings, stock):
    return listings.create(ListingAttributes(stock_number=stock, title=stock, slug=stock.lower()))


def test_same_url_is_downloaded_once_across_listings(conn, tmp_path):
    listings, media, downloader, ingester = _setup(conn, tmp_path)
    first = _listing(listings, "S1")
    second = _listing(listings, "S2")
    url = "https://m.atcdn.co.uk/a/media/shared.jpg"

    r1 = ingester.ingest(first, [url])
    r2 = ingester.ingest(second, [url])

    assert downloader.calls == [url]
    assert media.count() == 1
    assert r1.attached_ids == r2.attached_ids
    assert listings.get_primary_media(first) == r1.attached_ids[0]
    assert listings.get_primary_media(second) == r1.attached_ids[0]


def test_resize_placeholder_variants_share_one_asset(conn, tmp_path):
    listings, media, downloader, ingester = _setup(conn, tmp_path)
    listing_id = _listing(listings, "S1")

    result = ingester.ingest(
        listing_id,
        [
            "https://m.atcdn.co.uk/a/media/{resize}/a.jpg",
            "https://m.atcdn.co.uk/a/media/a.jpg",
        ],
    )

    assert downloader.calls == ["https://m.atcdn.co.uk/a/media/a.jpg"]
    assert len(result.attached_ids) == 1
    assert listings.get_gallery(listing_id) == result.attached_ids


def test_bad_refs_are_recorded_and_the_rest_attach(conn, tmp_path):
    broken = "https://m.atcdn.co.uk/a/media/missing.jpg"
    listings, media, downloader, ingester = _setup(conn, tmp_path, failures={broken})
    listing_id = _listing(listings, "S1")

    result = ingester.ingest(
        listing_id,
        ["", "not a url", broken, "https://m.atcdn.co.uk/a/media/ok.jpg"],
    )

    assert len(result.errors) == 3
    assert any("HTTP 404" in e for e in result.errors)
    assert len(result.attached_ids) == 1
    assert result.primary_id == result.attached_ids[0]
    assert media.count() == 1


def test_existing_primary_is_kept_and_gallery_is_extended(conn, tmp_path):
    listings, media, downloader, ingester = _setup(conn, tmp_path)
    listing_id = _listing(listings, "S1")
    first = ingester.ingest(listing_id, ["https://x.example/1.jpg"])

    second = ingester.ingest(listing_id, ["https://x.example/2.jpg", "https://x.example/1.jpg"])

    assert second.primary_id == first.primary_id
    assert listings.get_primary_media(listing_id) == first.primary_id
    gallery = listings.get_gallery(listing_id)
    assert gallery[0] == first.primary_id
    assert len(gallery) == 2


def test_nothing_resolved_clears_gallery(conn, tmp_path):
    listings, media, downloader, ingester = _setup(conn, tmp_path)
    listing_id = _listing(listings, "S1")

    result = ingester.ingest(listing_id, ["not a url"])

    assert result.attached_ids == []
    assert listings.get_gallery(listing_id) == []
    assert listings.get_primary_media(listing_id) is None


def test_delay_applies_between_downloads_not_reuses(conn, tmp_path):
    sleeps = []
    listings, media, downloader, ingester = _setup(conn, tmp_path, sleep=sleeps.append)
    listing_id = _listing(listings, "S1")

    ingester.ingest(
        listing_id,
        ["https://x.example/1.jpg", "https://x.example/2.jpg", "https://x.example/1.jpg"],
    )

    assert len(downloader.calls) == 2
    assert sleeps == [0.2]


class RecordingListings(ListingRepository):
    def __init__(self, conn):
        super().__init__(conn)
        self.cleared = []

    def clear_primary(self, listing_id):
        self.cleared.append(listing_id)
        super().clear_primary(listing_id)


def test_nothing_resolved_clears_primary_only_when_none_was_set(conn, tmp_path):
    listings = RecordingListings(conn)
    ingester = MediaIngester(
        listings, MediaRepository(conn), FakeDownloader(tmp_path / "media"), download_delay=0
    )
    bare = _listing(listings, "S1")
    pictured = _listing(listings, "S2")
    primary = ingester.ingest(pictured, ["https://x.example/1.jpg"]).primary_id

    ingester.ingest(bare, ["not a url"])
    result = ingester.ingest(pictured, ["ftp://x.example/2.jpg"])

    assert listings.cleared == [bare]
    assert listings.get_primary_media(bare) is None
    assert result.attached_ids == []
    assert result.primary_id == primary
    assert listings.get_primary_media(pictured) == primary
    assert listings.get_gallery(pictured) == []
