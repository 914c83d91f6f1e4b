import hashlib

import httpx

from stocksync.infrastructure.persistence.media import MediaDownloader

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def _downloader(tmp_path, handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return MediaDownloader(tmp_path / "media", client=client)


def test_download_stores_file_by_content_hash(tmp_path):
    def handler(request):
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png; charset=binary"})

    media, error = _downloader(tmp_path, handler).download("https://m.atcdn.co.uk/a/media/x.png")

    sha = hashlib.sha256(PNG_BYTES).hexdigest()
    assert error is None
    assert media.sha256 == sha
    assert media.content_type == "image/png"
    assert media.size_bytes == len(PNG_BYTES)
    assert media.local_path == str(tmp_path / "media" / sha[:2] / f"{sha}.png")
    with open(media.local_path, "rb") as f:
        assert f.read() == PNG_BYTES


def test_http_error_returns_message_and_leaves_no_files(tmp_path):
    def handler(request):
        return httpx.Response(404)

    media, error = _downloader(tmp_path, handler).download("https://m.atcdn.co.uk/a/media/gone.jpg")

    assert media is None
    assert error == "HTTP 404"
    media_dir = tmp_path / "media"
    assert not media_dir.exists() or list(media_dir.rglob("*")) == []


def test_transport_error_is_reported(tmp_path):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    media, error = _downloader(tmp_path, handler).download("https://m.atcdn.co.uk/a/media/x.jpg")

    assert media is None
    assert "refused" in error


def test_empty_body_is_an_error(tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"")

    media, error = _downloader(tmp_path, handler).download("https://m.atcdn.co.uk/a/media/x.jpg")

    assert media is None
    assert error == "Empty response body"


def test_temporary_files_are_not_left_behind(tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg"})

    downloader = _downloader(tmp_path, handler)
    downloader.download("https://x.example/1.jpg")
    downloader.download("https://x.example/2.jpg")

    leftovers = [p for p in (tmp_path / "media").rglob(".download-*")]
    assert leftovers == []


def test_body_is_written_chunk_by_chunk(tmp_path):
    chunks = [b"chunk-one|", b"chunk-two|", b"chunk-three"]

    def handler(request):
        return httpx.Response(200, content=iter(chunks), headers={"content-type": "image/webp"})

    media, error = _downloader(tmp_path, handler).download("https://x.example/a.webp")

    body = b"".join(chunks)
    assert error is None
    assert media.size_bytes == len(body)
    assert media.sha256 == hashlib.sha256(body).hexdigest()
    assert media.local_path.endswith(".webp")
    with open(media.local_path, "rb") as f:
        assert f.read() == body


def test_transfer_cut_short_leaves_no_files(tmp_path):
    def broken_body():
        yield b"first part"
        raise httpx.ReadError("connection reset")

    def handler(request):
        return httpx.Response(200, content=broken_body(), headers={"content-type": "image/jpeg"})

    media, error = _downloader(tmp_path, handler).download("https://x.example/1.jpg")

    assert media is None
    assert "connection reset" in error
    assert [p for p in (tmp_path / "media").rglob("*") if p.is_file()] == []
