"""
YouTube relay feature module.

This module contains everything related to relaying YouTube links:
- Link recognition
- Stream resolution via yt-dlp
- Downloading to the scratch directory
- The per-message dispatcher and its pipeline handler
"""

from video_relay.dispatcher import RelayDispatcher
from video_relay.models import InboundMessage, MediaReference, OutcomeStatus, RelayOutcome, Stage
from video_relay.recognizer import recognize

__all__ = [
    'RelayDispatcher',
    'InboundMessage',
    'MediaReference',
    'OutcomeStatus',
    'RelayOutcome',
    'Stage',
    'recognize',
]
