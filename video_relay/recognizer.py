"""
Link recognizer: decides whether a chat message is a YouTube video link.
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlsplit, urlunsplit

from video_relay.models import MediaReference

logger = logging.getLogger(__name__)

URL_PREFIX = "https://"
HOST_MARKER = "youtube.com/"
HOST_DOMAIN = "youtube.com"

# Path prefixes that carry the video id as the next path segment
ID_PATH_PREFIXES = ("shorts", "embed", "live", "v")

_VIDEO_ID_RE = re.compile(r'^[A-Za-z0-9_-]+$')
# Backslashes are path separators to browsers but not to urlsplit
_FORBIDDEN_CHARS_RE = re.compile(r'[\s\\]')


def _is_youtube_host(hostname: Optional[str]) -> bool:
    if not hostname:
        return False
    return hostname == HOST_DOMAIN or hostname.endswith("." + HOST_DOMAIN)


def _extract_video_id(path: str, query: str) -> Optional[str]:
    segments = [segment for segment in path.split("/") if segment]

    if segments == ["watch"]:
        candidates = parse_qs(query).get("v") or []
        video_id = candidates[0] if candidates else None
    elif len(segments) >= 2 and segments[0] in ID_PATH_PREFIXES:
        video_id = segments[1]
    else:
        video_id = None

    if video_id and _VIDEO_ID_RE.match(video_id):
        return video_id
    return None


def parse_media_reference(text: str) -> MediaReference:
    """
    Parse text into a MediaReference.

    Raises:
        ValueError: If the text is not an https YouTube video URL
    """
    if not text.startswith(URL_PREFIX) or HOST_MARKER not in text:
        raise ValueError("not a youtube link")
    if _FORBIDDEN_CHARS_RE.search(text):
        raise ValueError("URL contains whitespace or backslashes")

    parts = urlsplit(text)
    # .port raises ValueError when the authority is malformed
    _ = parts.port
    if parts.scheme != "https" or not _is_youtube_host(parts.hostname):
        raise ValueError(f"unexpected host: {parts.hostname!r}")

    video_id = _extract_video_id(parts.path, parts.query)
    if not video_id:
        raise ValueError("no video id in URL")

    url = urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
    return MediaReference(url=url, video_id=video_id)


def recognize(text: Optional[str]) -> Optional[MediaReference]:
    """
    Return a MediaReference if the message text is a YouTube video link.

    The whole message must be the link: it has to start with "https://",
    contain "youtube.com/", and parse as an absolute URL whose host is
    youtube.com or one of its subdomains.

    This is stricter than the substring test alone, and everything the
    stricter rules turn away is ignored silently like ordinary chatter,
    with no failure notice:

    - links followed by a caption or other text ("<link> nice video"),
      or containing whitespace or backslashes anywhere;
    - youtube.com links that do not name a single video (channels,
      playlists, the home page);
    - links with a malformed authority or port.

    Args:
        text: Message text, None for non-text messages

    Returns:
        MediaReference, or None if the text is not a video link
    """
    if not text:
        return None
    try:
        return parse_media_reference(text)
    except ValueError as e:
        logger.debug(f"[RECOGNIZE] Rejected text: {e}")
        return None


__all__ = ['recognize', 'parse_media_reference']
