"""Stage errors raised inside the relay pipeline."""

from enum import Enum
from typing import Optional

from video_relay.models import Stage


class ResolveErrorKind(str, Enum):
    METADATA_UNAVAILABLE = "metadata_unavailable"
    NO_SUITABLE_STREAM = "no_suitable_stream"
    TIMEOUT = "timeout"


class FetchErrorKind(str, Enum):
    NETWORK = "network"
    DISK = "disk"
    CIPHER_RESOLUTION = "cipher_resolution"
    TOO_LARGE = "too_large"
    TIMEOUT = "timeout"


class SendErrorKind(str, Enum):
    NETWORK = "network"
    REJECTED = "rejected"


class RelayError(Exception):
    """
    Base class for failures of a single pipeline stage.

    Attributes:
        stage: Stage that failed
        kind: Error kind within that stage
        detail: Human readable cause, used for logging only
    """

    stage: Stage = Stage.RECOGNIZE

    def __init__(self, kind: Enum, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        message = kind.value if not detail else f"{kind.value}: {detail}"
        super().__init__(message)

    @property
    def reason(self) -> str:
        return self.kind.value


class ResolveError(RelayError):
    stage = Stage.RESOLVE

    def __init__(self, kind: ResolveErrorKind, detail: Optional[str] = None):
        super().__init__(kind, detail)


class FetchError(RelayError):
    stage = Stage.FETCH

    def __init__(self, kind: FetchErrorKind, detail: Optional[str] = None):
        super().__init__(kind, detail)


class SendError(RelayError):
    stage = Stage.UPLOAD

    def __init__(self, kind: SendErrorKind, detail: Optional[str] = None):
        super().__init__(kind, detail)


__all__ = [
    'RelayError',
    'ResolveError',
    'ResolveErrorKind',
    'FetchError',
    'FetchErrorKind',
    'SendError',
    'SendErrorKind',
]
