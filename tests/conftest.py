"""Shared fakes for the relay tests."""

import uuid
from pathlib import Path
from typing import Callable, Optional

import pytest

from video_relay.downloader import Fetcher
from video_relay.dispatcher import RelayDispatcher
from video_relay.models import Rendition, VideoInfo
from video_relay.resolver import StreamResolver


def make_rendition(
    format_id: str = "22",
    quality_label: Optional[str] = "720p",
    has_video: bool = True,
    has_audio: bool = True,
    url: Optional[str] = "https://rr1.googlevideo.com/videoplayback?id=1",
) -> Rendition:
    return Rendition(
        format_id=format_id,
        url=url,
        quality_label=quality_label,
        has_video=has_video,
        has_audio=has_audio,
    )


class FakeMetadata:
    """
    Stand-in for YtDlpClient.

    videos maps a video id to a VideoInfo or to an exception to raise.
    download_error, when set, is raised by download_rendition (a callable
    receives the media id and returns the exception or None).
    """

    def __init__(self, videos=None, download_error=None, payload: bytes = b"\x00\x00\x00\x18ftypmp42"):
        self.videos = videos or {}
        self.download_error = download_error
        self.payload = payload
        self.info_calls: list[str] = []
        self.download_calls: list[tuple[Rendition, Path, str]] = []

    def fetch_video_info(self, url: str) -> VideoInfo:
        self.info_calls.append(url)
        for video_id, result in self.videos.items():
            if video_id in url:
                if isinstance(result, Exception):
                    raise result
                return result
        raise LookupError(f"unknown video: {url}")

    def download_rendition(self, rendition: Rendition, destination_dir: Path, media_id: str) -> Path:
        self.download_calls.append((rendition, destination_dir, media_id))
        error = self.download_error
        if callable(error):
            error = error(media_id)
        if error is not None:
            raise error
        path = Path(destination_dir) / f"{media_id}.{rendition.format_id}.{uuid.uuid4().hex}.mp4"
        path.write_bytes(self.payload)
        return path


class FakeChat:
    """Records every chat call; errors can be injected per method."""

    def __init__(self, video_error: Optional[Exception] = None, message_error: Optional[Exception] = None):
        self.video_error = video_error
        self.message_error = message_error
        self.messages: list[tuple[int, str, Optional[int]]] = []
        self.videos: list[tuple[int, Path, Optional[str], Optional[int]]] = []
        self.uploaded_payloads: list[bytes] = []
        self.actions: list[int] = []

    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        self.messages.append((chat_id, text, reply_to))
        if self.message_error:
            raise self.message_error

    async def send_video(self, chat_id, path, caption=None, reply_to=None) -> None:
        self.videos.append((chat_id, Path(path), caption, reply_to))
        if self.video_error:
            raise self.video_error
        self.uploaded_payloads.append(Path(path).read_bytes())

    async def send_upload_action(self, chat_id: int) -> None:
        self.actions.append(chat_id)


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def make_dispatcher(scratch_dir: Path) -> Callable[..., RelayDispatcher]:
    def _make(metadata: FakeMetadata, chat: FakeChat, bot_username: str = "@tubecat_test_bot") -> RelayDispatcher:
        return RelayDispatcher(
            chat=chat,
            resolver=StreamResolver(metadata, timeout=5),
            fetcher=Fetcher(metadata, scratch_dir=scratch_dir, timeout=5),
            bot_username=bot_username,
        )

    return _make
