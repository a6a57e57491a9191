import asyncio
import time
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

from conftest import FakeMetadata, make_rendition
from video_relay.downloader import Fetcher, stream_to_file, unique_filename
from video_relay.errors import FetchError, FetchErrorKind
from video_relay.models import MediaReference, SelectedRendition

SELECTED = SelectedRendition(
    reference=MediaReference(url="https://www.youtube.com/watch?v=abc123", video_id="abc123"),
    rendition=make_rendition("22", "720p"),
)


class FakeResponse:
    def __init__(self, chunks=(), status_code=200, headers=None, fail_after=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.headers = headers or {}
        self.fail_after = fail_after

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def iter_content(self, chunk_size=1):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise requests.ConnectionError("connection reset")
            yield chunk


def test_stream_to_file_writes_whole_payload(tmp_path: Path):
    destination = tmp_path / "video.mp4"
    response = FakeResponse([b"abc", b"", b"def"], headers={'content-length': '6'})

    with patch("video_relay.downloader.requests.get", return_value=response) as get:
        written = stream_to_file("https://cdn.example/v", destination, headers={'User-Agent': 'x'})

    assert written == 6
    assert destination.read_bytes() == b"abcdef"
    assert list(tmp_path.iterdir()) == [destination]
    assert get.call_args.kwargs['headers'] == {'User-Agent': 'x'}
    assert get.call_args.kwargs['stream'] is True


@pytest.mark.parametrize(
    "response, kind",
    [
        (FakeResponse([b"x" * 10], headers={'content-length': '999'}), FetchErrorKind.TOO_LARGE),
        (FakeResponse([b"x" * 6, b"x" * 6]), FetchErrorKind.TOO_LARGE),
        (FakeResponse([b"abc", b"def"], fail_after=1), FetchErrorKind.NETWORK),
        (FakeResponse(status_code=404), FetchErrorKind.NETWORK),
    ],
)
def test_stream_to_file_failures_leave_no_files(tmp_path: Path, response, kind):
    destination = tmp_path / "video.mp4"

    with patch("video_relay.downloader.requests.get", return_value=response):
        with pytest.raises(FetchError) as exc_info:
            stream_to_file("https://cdn.example/v", destination, max_size=10)

    assert exc_info.value.kind is kind
    assert list(tmp_path.iterdir()) == []


def test_stream_to_file_connection_failure(tmp_path: Path):
    with patch("video_relay.downloader.requests.get", side_effect=requests.ConnectTimeout("slow")):
        with pytest.raises(FetchError) as exc_info:
            stream_to_file("https://cdn.example/v", tmp_path / "video.mp4")

    assert exc_info.value.kind is FetchErrorKind.NETWORK


def test_stream_to_file_disk_failure(tmp_path: Path):
    destination = tmp_path / "missing-dir" / "video.mp4"

    with patch("video_relay.downloader.requests.get", return_value=FakeResponse([b"abc"])):
        with pytest.raises(FetchError) as exc_info:
            stream_to_file("https://cdn.example/v", destination)

    assert exc_info.value.kind is FetchErrorKind.DISK


def test_stream_to_file_enforces_deadline(tmp_path: Path):
    with patch("video_relay.downloader.requests.get", return_value=FakeResponse([b"a", b"b"])):
        with patch("video_relay.downloader.time") as fake_time:
            fake_time.monotonic.side_effect = [0.0, 100.0, 200.0]
            with pytest.raises(FetchError) as exc_info:
                stream_to_file("https://cdn.example/v", tmp_path / "video.mp4", timeout=10)

    assert exc_info.value.kind is FetchErrorKind.TIMEOUT
    assert list(tmp_path.iterdir()) == []


def test_unique_filename_differs_per_call():
    rendition = make_rendition("22")

    first = unique_filename("abc123", rendition)
    second = unique_filename("abc123", rendition)

    assert first != second
    assert first.startswith("abc123.22.")
    assert first.endswith(".mp4")


@pytest.mark.asyncio
async def test_fetch_creates_scratch_dir_and_returns_artifact(tmp_path: Path):
    scratch = tmp_path / "nested" / "scratch"
    metadata = FakeMetadata(payload=b"video")

    artifact = await Fetcher(metadata, scratch_dir=scratch).fetch(SELECTED)

    assert artifact.media_id == "abc123"
    assert artifact.path.parent == scratch
    assert artifact.path.read_bytes() == b"video"
    assert metadata.download_calls[0][2] == "abc123"


@pytest.mark.asyncio
async def test_fetch_never_reuses_a_file(tmp_path: Path):
    fetcher = Fetcher(FakeMetadata(), scratch_dir=tmp_path)

    first = await fetcher.fetch(SELECTED)
    second = await fetcher.fetch(SELECTED)

    assert first.path != second.path


@pytest.mark.parametrize(
    "error, kind",
    [
        (FetchError(FetchErrorKind.CIPHER_RESOLUTION), FetchErrorKind.CIPHER_RESOLUTION),
        (requests.ConnectionError("reset"), FetchErrorKind.NETWORK),
        (PermissionError("read-only"), FetchErrorKind.DISK),
    ],
)
@pytest.mark.asyncio
async def test_fetch_maps_collaborator_errors(tmp_path: Path, error, kind):
    with pytest.raises(FetchError) as exc_info:
        await Fetcher(FakeMetadata(download_error=error), scratch_dir=tmp_path).fetch(SELECTED)

    assert exc_info.value.kind is kind


@pytest.mark.asyncio
async def test_fetch_rejects_missing_file(tmp_path: Path):
    class LyingDownloader:
        def download_rendition(self, rendition, destination_dir, media_id):
            return Path(destination_dir) / "never-written.mp4"

    with pytest.raises(FetchError) as exc_info:
        await Fetcher(LyingDownloader(), scratch_dir=tmp_path).fetch(SELECTED)

    assert exc_info.value.kind is FetchErrorKind.DISK


@pytest.mark.asyncio
async def test_fetch_scratch_dir_unusable(tmp_path: Path):
    not_a_dir = tmp_path / "file"
    not_a_dir.write_text("x")

    with pytest.raises(FetchError) as exc_info:
        await Fetcher(FakeMetadata(), scratch_dir=not_a_dir).fetch(SELECTED)

    assert exc_info.value.kind is FetchErrorKind.DISK


@pytest.mark.asyncio
async def test_fetch_times_out(tmp_path: Path):
    class SlowDownloader:
        def download_rendition(self, rendition, destination_dir, media_id):
            time.sleep(0.5)
            return Path(destination_dir) / "late.mp4"

    with pytest.raises(FetchError) as exc_info:
        await Fetcher(SlowDownloader(), scratch_dir=tmp_path, timeout=0.05).fetch(SELECTED)

    assert exc_info.value.kind is FetchErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_fetch_timeout_removes_file_finished_late(tmp_path: Path):
    class LateDownloader:
        def download_rendition(self, rendition, destination_dir, media_id):
            time.sleep(0.2)
            path = Path(destination_dir) / "late.mp4"
            path.write_bytes(b"video")
            return path

    with pytest.raises(FetchError) as exc_info:
        await Fetcher(LateDownloader(), scratch_dir=tmp_path, timeout=0.05).fetch(SELECTED)
    assert exc_info.value.kind is FetchErrorKind.TIMEOUT

    await asyncio.sleep(0.4)

    assert list(tmp_path.iterdir()) == []
