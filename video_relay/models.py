"""
Data model for the YouTube relay pipeline.

Everything here is transient: objects are created for one pipeline run
and dropped once the outcome has been reported.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# "720p", "720p60", "1080p HDR" -> (720, 60), (720, 0), (1080, 0)
_QUALITY_LABEL_RE = re.compile(r'^\s*(\d+)p(\d+)?')


class Stage(str, Enum):
    """Pipeline stage a run can fail in."""
    RECOGNIZE = "recognize"
    RESOLVE = "resolve"
    FETCH = "fetch"
    UPLOAD = "upload"


class OutcomeStatus(str, Enum):
    NOT_A_MATCH = "not_a_match"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class InboundMessage:
    """The only message fields the relay looks at."""
    chat_id: int
    text: Optional[str] = None
    message_id: Optional[int] = None


@dataclass(frozen=True)
class MediaReference:
    """
    Validated pointer to one YouTube video.

    Build it with recognizer.recognize(); constructing it by hand skips the
    URL checks.
    """
    url: str
    video_id: str


def quality_rank(label: Optional[str]) -> tuple[int, int]:
    """
    Sort key for a quality label.

    Labels are ordered by height then frame rate. Anything that does not
    look like "<height>p[<fps>]" ranks below every real label.
    """
    if not label:
        return (-1, -1)
    match = _QUALITY_LABEL_RE.match(label)
    if not match:
        return (-1, -1)
    height = int(match.group(1))
    fps = int(match.group(2)) if match.group(2) else 0
    return (height, fps)


@dataclass(frozen=True)
class Rendition:
    """One downloadable encoding of a video."""
    format_id: str
    url: Optional[str]
    quality_label: Optional[str]
    has_video: bool
    has_audio: bool
    ext: str = "mp4"
    filesize: Optional[int] = None
    http_headers: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_muxed(self) -> bool:
        """True if the rendition carries both an audio and a video track."""
        return self.has_video and self.has_audio

    @property
    def rank(self) -> tuple[int, int]:
        return quality_rank(self.quality_label)


RenditionSet = tuple[Rendition, ...]


@dataclass(frozen=True)
class VideoInfo:
    """What the metadata collaborator knows about one video."""
    video_id: str
    title: Optional[str] = None
    renditions: RenditionSet = ()


@dataclass(frozen=True)
class SelectedRendition:
    """The rendition picked for download, tied to the reference it came from."""
    reference: MediaReference
    rendition: Rendition
    title: Optional[str] = None

    def __post_init__(self):
        if not self.rendition.is_muxed:
            raise ValueError(
                f"Rendition {self.rendition.format_id} must carry both audio and video"
            )

    @property
    def media_id(self) -> str:
        return self.reference.video_id


@dataclass(frozen=True)
class DownloadedArtifact:
    """A fully downloaded file waiting to be uploaded."""
    path: Path
    media_id: str

    def discard(self) -> bool:
        """
        Delete the file from the scratch directory.

        Returns:
            True if a file was removed, False if it was already gone
        """
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"[ARTIFACT] Could not remove {self.path}: {e}")
            return False


@dataclass(frozen=True)
class RelayOutcome:
    """Terminal result of one pipeline run."""
    status: OutcomeStatus
    media_id: Optional[str] = None
    stage: Optional[Stage] = None
    reason: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def not_a_match(cls) -> "RelayOutcome":
        return cls(status=OutcomeStatus.NOT_A_MATCH)

    @classmethod
    def sent(cls, media_id: str) -> "RelayOutcome":
        return cls(status=OutcomeStatus.SENT, media_id=media_id)

    @classmethod
    def failed(
        cls,
        stage: Stage,
        reason: str,
        media_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> "RelayOutcome":
        return cls(
            status=OutcomeStatus.FAILED,
            media_id=media_id,
            stage=stage,
            reason=reason,
            detail=detail,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            'status': self.status.value,
            'media_id': self.media_id,
            'stage': self.stage.value if self.stage else None,
            'reason': self.reason,
        }
