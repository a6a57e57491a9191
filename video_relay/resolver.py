"""
Stream resolver: turns a MediaReference into the rendition to download.
"""

import asyncio
import logging
from typing import Iterable, Optional, Protocol

from video_relay.errors import ResolveError, ResolveErrorKind
from video_relay.models import MediaReference, Rendition, SelectedRendition, VideoInfo

logger = logging.getLogger(__name__)


class MetadataSource(Protocol):
    """Anything that can list the renditions of a video (see youtube.YtDlpClient)."""

    def fetch_video_info(self, url: str) -> VideoInfo:
        ...


def select_best_rendition(renditions: Iterable[Rendition]) -> Optional[Rendition]:
    """
    Pick the highest quality rendition that has both audio and video.

    Ties keep the first rendition seen.

    Args:
        renditions: Candidate renditions in collaborator order

    Returns:
        Best muxed rendition, or None if there is none
    """
    best = None
    for rendition in renditions:
        if not rendition.is_muxed:
            continue
        if best is None or rendition.rank > best.rank:
            best = rendition
    return best


class StreamResolver:
    """Fetches video metadata and applies the quality selection rule."""

    def __init__(self, metadata: MetadataSource, timeout: float = 60.0):
        self.metadata = metadata
        self.timeout = timeout

    async def resolve(self, ref: MediaReference) -> SelectedRendition:
        """
        Resolve the best muxed rendition for a video.

        Raises:
            ResolveError: METADATA_UNAVAILABLE if the collaborator failed,
                TIMEOUT if it did not answer in time, NO_SUITABLE_STREAM if
                no rendition carries both audio and video
        """
        logger.info(f"[RESOLVE] Fetching video info for {ref.video_id}...")
        try:
            info = await asyncio.wait_for(
                asyncio.to_thread(self.metadata.fetch_video_info, ref.url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise ResolveError(
                ResolveErrorKind.TIMEOUT,
                f"no metadata after {self.timeout:.0f}s",
            ) from None
        except Exception as e:
            raise ResolveError(
                ResolveErrorKind.METADATA_UNAVAILABLE,
                f"{type(e).__name__}: {e}",
            ) from e

        logger.info(f"[RESOLVE] {len(info.renditions)} rendition(s) available for {ref.video_id}")
        best = select_best_rendition(info.renditions)
        if best is None:
            raise ResolveError(
                ResolveErrorKind.NO_SUITABLE_STREAM,
                f"none of {len(info.renditions)} rendition(s) has both audio and video",
            )

        logger.info(f"[RESOLVE] Selected format {best.format_id} ({best.quality_label}) for {ref.video_id}")
        return SelectedRendition(reference=ref, rendition=best, title=info.title)


__all__ = ['MetadataSource', 'StreamResolver', 'select_best_rendition']
