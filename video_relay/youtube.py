"""
YouTube metadata collaborator backed by yt-dlp.

yt-dlp does the extraction work (player API, signature deciphering); the
payload itself is streamed with requests by video_relay.downloader.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yt_dlp

from video_relay.downloader import MAX_FILE_SIZE, stream_to_file, unique_filename
from video_relay.errors import FetchError, FetchErrorKind
from video_relay.models import Rendition, VideoInfo

logger = logging.getLogger(__name__)

# Protocols whose URL serves the whole file in a single GET
DIRECT_PROTOCOLS = ("http", "https")


class MetadataError(Exception):
    """yt-dlp could not describe the video."""


def _has_track(codec: Optional[str]) -> bool:
    # yt-dlp uses the string "none" for a missing track; None means unknown
    return bool(codec) and codec != "none"


def quality_label_for(fmt: dict[str, Any]) -> Optional[str]:
    """
    Build a YouTube style quality label ("720p", "1080p60") for a format.

    High frame rates are appended like YouTube does; 30fps and below are not.
    """
    height = fmt.get('height')
    if height:
        fps = fmt.get('fps')
        suffix = str(int(fps)) if fps and fps > 30 else ""
        return f"{int(height)}p{suffix}"
    note = fmt.get('format_note')
    return note or None


def is_direct_download(fmt: dict[str, Any]) -> bool:
    """
    True if the format's URL is the media payload itself.

    HLS/DASH formats (m3u8_native, http_dash_segments, ...) point at a
    manifest, which stream_to_file would save verbatim. A missing protocol
    is treated as plain https.
    """
    return (fmt.get('protocol') or 'https') in DIRECT_PROTOCOLS


def rendition_from_format(fmt: dict[str, Any]) -> Rendition:
    """Map one entry of yt-dlp's "formats" list to a Rendition."""
    return Rendition(
        format_id=str(fmt.get('format_id') or ""),
        url=fmt.get('url') or None,
        quality_label=quality_label_for(fmt),
        has_video=_has_track(fmt.get('vcodec')),
        has_audio=_has_track(fmt.get('acodec')),
        ext=fmt.get('ext') or "mp4",
        filesize=fmt.get('filesize') or fmt.get('filesize_approx'),
        http_headers=dict(fmt.get('http_headers') or {}),
    )


def video_info_from_extraction(info: Optional[dict[str, Any]]) -> VideoInfo:
    """
    Convert yt-dlp's info dict into a VideoInfo.

    Only directly downloadable formats become renditions.

    Raises:
        MetadataError: If the info dict is empty or describes a playlist
    """
    if not isinstance(info, dict):
        raise MetadataError("yt-dlp returned no video info")
    if info.get('_type') == 'playlist' or info.get('entries'):
        raise MetadataError("link points to a playlist, not a single video")
    video_id = info.get('id')
    if not video_id:
        raise MetadataError("video info has no id")

    formats = info.get('formats') or []
    renditions = tuple(
        rendition_from_format(fmt)
        for fmt in formats
        if isinstance(fmt, dict) and is_direct_download(fmt)
    )
    return VideoInfo(video_id=str(video_id), title=info.get('title'), renditions=renditions)


class YtDlpLogger:
    """
    Logger handed to yt-dlp.

    yt-dlp logs its own failures before raising them, and those are reported
    again by the relay as a single stage failure, so everything it emits stays
    at DEBUG.
    """

    def debug(self, msg: str) -> None:
        logger.debug(f"[YTDLP] {msg}")

    def info(self, msg: str) -> None:
        logger.debug(f"[YTDLP] {msg}")

    def warning(self, msg: str) -> None:
        logger.debug(f"[YTDLP] {msg}")

    def error(self, msg: str) -> None:
        logger.debug(f"[YTDLP] {msg}")


class YtDlpClient:
    """
    Metadata and download collaborator for YouTube videos.

    Args:
        socket_timeout: Socket timeout handed to yt-dlp in seconds
        download_timeout: Deadline for a single payload transfer in seconds
        max_file_size: Largest payload accepted, in bytes
    """

    def __init__(
        self,
        socket_timeout: float = 30.0,
        download_timeout: float = 300.0,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.socket_timeout = socket_timeout
        self.download_timeout = download_timeout
        self.max_file_size = max_file_size

    def _ydl_opts(self) -> dict[str, Any]:
        return {
            'quiet': True,
            'no_warnings': True,
            'skip_download': True,
            'noplaylist': True,
            'socket_timeout': self.socket_timeout,
            'logger': YtDlpLogger(),
        }

    def fetch_video_info(self, url: str) -> VideoInfo:
        """
        Extract the renditions of one video without downloading anything.

        Raises:
            MetadataError: On extraction failures of any kind
        """
        logger.info(f"[YTDLP] Extracting info: {url}")
        try:
            with yt_dlp.YoutubeDL(self._ydl_opts()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise MetadataError(str(e)) from e
        except yt_dlp.utils.YoutubeDLError as e:
            raise MetadataError(f"{type(e).__name__}: {e}") from e

        video = video_info_from_extraction(info)
        logger.info(f"[YTDLP] {video.video_id}: {len(video.renditions)} format(s), title={video.title!r}")
        return video

    def download_rendition(self, rendition: Rendition, destination_dir: Path, media_id: str) -> Path:
        """
        Download a rendition into destination_dir under a fresh unique name.

        Raises:
            FetchError: CIPHER_RESOLUTION if yt-dlp could not produce a direct
                URL, otherwise whatever stream_to_file raises
        """
        if not rendition.url:
            raise FetchError(
                FetchErrorKind.CIPHER_RESOLUTION,
                f"format {rendition.format_id} has no playable URL",
            )
        if rendition.filesize and rendition.filesize > self.max_file_size:
            raise FetchError(
                FetchErrorKind.TOO_LARGE,
                f"{rendition.filesize} bytes reported (max {self.max_file_size})",
            )

        destination = Path(destination_dir) / unique_filename(media_id, rendition)
        stream_to_file(
            rendition.url,
            destination,
            headers=rendition.http_headers,
            max_size=self.max_file_size,
            timeout=self.download_timeout,
        )
        return destination


__all__ = [
    'MetadataError',
    'YtDlpClient',
    'YtDlpLogger',
    'is_direct_download',
    'quality_label_for',
    'rendition_from_format',
    'video_info_from_extraction',
]
