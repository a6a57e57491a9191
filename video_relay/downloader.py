"""
Video downloader module for the relay bot.

Streams rendition payloads to the scratch directory and hands the finished
file to the dispatcher as a DownloadedArtifact.
"""

import asyncio
import functools
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol

import requests

from video_relay.errors import FetchError, FetchErrorKind
from video_relay.models import DownloadedArtifact, Rendition, SelectedRendition

logger = logging.getLogger(__name__)

# Bot API upload limit for send_video is 50MB. Raise it only when running
# against a local Bot API server (max: 2000MB).
MAX_FILE_SIZE = 50 * 1024 * 1024

CHUNK_SIZE = 64 * 1024
PART_SUFFIX = ".part"


class RenditionDownloader(Protocol):
    """Anything that can write a rendition to disk (see youtube.YtDlpClient)."""

    def download_rendition(self, rendition: Rendition, destination_dir: Path, media_id: str) -> Path:
        ...


def unique_filename(media_id: str, rendition: Rendition) -> str:
    """File name that no other pipeline run will pick."""
    return f"{media_id}.{rendition.format_id}.{uuid.uuid4().hex}.{rendition.ext or 'mp4'}"


def stream_to_file(
    url: str,
    destination: Path,
    headers: Optional[dict] = None,
    max_size: int = MAX_FILE_SIZE,
    timeout: float = 300.0,
) -> int:
    """
    Download a URL into destination.

    The payload is written to "<destination>.part" first and renamed once the
    transfer is complete, so destination only ever names a whole file. The
    part file is removed on every failure.

    Args:
        url: Direct media URL
        destination: Final file path
        headers: Extra request headers
        max_size: Abort when the payload grows past this many bytes
        timeout: Overall deadline for the transfer in seconds

    Returns:
        Number of bytes written

    Raises:
        FetchError: NETWORK, DISK, TOO_LARGE or TIMEOUT
    """
    part_path = destination.with_name(destination.name + PART_SUFFIX)
    deadline = time.monotonic() + timeout
    downloaded = 0

    logger.info(f"[FETCH] Starting download to {destination.name}")
    try:
        with requests.get(url, headers=headers or {}, stream=True, timeout=(10, 30)) as response:
            logger.info(f"[FETCH] Response status: {response.status_code}")
            response.raise_for_status()

            content_length = response.headers.get('content-length')
            if content_length and content_length.isdigit() and int(content_length) > max_size:
                raise FetchError(
                    FetchErrorKind.TOO_LARGE,
                    f"{int(content_length)} bytes announced (max {max_size})",
                )

            with open(part_path, 'wb') as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    downloaded += len(chunk)

                    if downloaded > max_size:
                        raise FetchError(
                            FetchErrorKind.TOO_LARGE,
                            f"exceeded {max_size} bytes during download",
                        )
                    if time.monotonic() > deadline:
                        raise FetchError(
                            FetchErrorKind.TIMEOUT,
                            f"transfer still running after {timeout:.0f}s",
                        )

        os.replace(part_path, destination)
    except FetchError:
        _remove_quietly(part_path)
        raise
    except requests.RequestException as e:
        _remove_quietly(part_path)
        raise FetchError(FetchErrorKind.NETWORK, f"{type(e).__name__}: {e}") from e
    except OSError as e:
        _remove_quietly(part_path)
        raise FetchError(FetchErrorKind.DISK, f"{type(e).__name__}: {e}") from e

    logger.info(f"[FETCH] Download complete: {downloaded} bytes ({downloaded / (1024*1024):.2f}MB)")
    return downloaded


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"[FETCH] Could not remove partial file {path}: {e}")


def _discard_late_download(media_id: str, worker: asyncio.Future) -> None:
    """Remove a file that a timed-out download finished writing anyway."""
    if worker.cancelled() or worker.exception() is not None:
        return
    late = DownloadedArtifact(path=Path(worker.result()), media_id=media_id)
    if late.discard():
        logger.info(f"[FETCH] Removed late download for {media_id}: {late.path}")


class Fetcher:
    """
    Downloads the selected rendition into the scratch directory.

    Every call gets its own file; nothing is cached or reused between runs.
    """

    def __init__(self, downloader: RenditionDownloader, scratch_dir: Path, timeout: float = 300.0):
        self.downloader = downloader
        self.scratch_dir = Path(scratch_dir)
        self.timeout = timeout

    async def fetch(self, selected: SelectedRendition) -> DownloadedArtifact:
        """
        Download the rendition and return the finished artifact.

        Raises:
            FetchError: On network, disk, signature or size failures, and
                TIMEOUT when the download outlives the fetch timeout
        """
        media_id = selected.media_id
        rendition = selected.rendition

        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(FetchErrorKind.DISK, f"scratch dir unusable: {e}") from e

        logger.info(f"[FETCH] Fetching {media_id} format {rendition.format_id} ({rendition.quality_label})")
        worker = asyncio.ensure_future(
            asyncio.to_thread(self.downloader.download_rendition, rendition, self.scratch_dir, media_id)
        )
        try:
            # shield keeps the worker future alive so a late result can still be cleaned up
            path = await asyncio.wait_for(asyncio.shield(worker), timeout=self.timeout)
        except asyncio.TimeoutError:
            worker.add_done_callback(functools.partial(_discard_late_download, media_id))
            raise FetchError(
                FetchErrorKind.TIMEOUT,
                f"download not finished after {self.timeout:.0f}s",
            ) from None
        except asyncio.CancelledError:
            worker.add_done_callback(functools.partial(_discard_late_download, media_id))
            raise
        except FetchError:
            raise
        except requests.RequestException as e:
            raise FetchError(FetchErrorKind.NETWORK, f"{type(e).__name__}: {e}") from e
        except OSError as e:
            raise FetchError(FetchErrorKind.DISK, f"{type(e).__name__}: {e}") from e

        path = Path(path)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise FetchError(FetchErrorKind.DISK, f"downloaded file is not readable: {path}")

        logger.info(f"[FETCH] {media_id} ready at {path}")
        return DownloadedArtifact(path=path, media_id=media_id)


__all__ = ['MAX_FILE_SIZE', 'Fetcher', 'RenditionDownloader', 'stream_to_file', 'unique_filename']
