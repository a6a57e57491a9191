"""
RelayDispatcher - runs one message through recognize, resolve, fetch, upload.

Each call to handle() is independent: the dispatcher keeps no state between
messages, so it can serve any number of concurrent updates.
"""

import logging
import random

from video_relay.chat import ChatClient
from video_relay.downloader import Fetcher
from video_relay.errors import (
    FetchErrorKind,
    RelayError,
    ResolveErrorKind,
    SendErrorKind,
)
from video_relay.models import InboundMessage, RelayOutcome, SelectedRendition, Stage
from video_relay.recognizer import recognize
from video_relay.resolver import StreamResolver

logger = logging.getLogger(__name__)

# Cat emojis for error messages
CAT_EMOJIS = ["😺", "😸", "😹", "😻", "😼", "😽", "🙀", "😿", "😾", "🐱"]

FAILURE_MESSAGES = {
    (Stage.RESOLVE, ResolveErrorKind.METADATA_UNAVAILABLE.value):
        "😿 Meow! I couldn't read this video. It might be private, deleted or region locked!",
    (Stage.RESOLVE, ResolveErrorKind.NO_SUITABLE_STREAM.value):
        "😿 Meow! This video has no stream with both picture and sound that I can send!",
    (Stage.RESOLVE, ResolveErrorKind.TIMEOUT.value):
        "😿 Meow! YouTube took too long to answer. Try again later!",
    (Stage.FETCH, FetchErrorKind.TOO_LARGE.value):
        "😿 Meow! This video is too big for my tiny paws!",
    (Stage.FETCH, FetchErrorKind.TIMEOUT.value):
        "😿 Meow! The download took too long, I gave up!",
    (Stage.FETCH, FetchErrorKind.CIPHER_RESOLUTION.value):
        "😿 Meow! YouTube scrambled this stream and I couldn't unscramble it!",
    (Stage.UPLOAD, SendErrorKind.REJECTED.value):
        "😿 Meow! Telegram refused to take this video!",
}
FALLBACK_FAILURE_MESSAGE = "😿 Meow! Video download failed. Something went wrong!"
UNEXPECTED_REASON = "unexpected"


def get_random_cat_emoji() -> str:
    """Return a random cat emoji for error messages."""
    return random.choice(CAT_EMOJIS)


class RelayDispatcher:
    """
    Relays YouTube links posted in a chat back into the chat as videos.

    Args:
        chat: Chat collaborator used for replies and uploads
        resolver: Picks the rendition to download
        fetcher: Downloads it into the scratch directory
        bot_username: Signature appended to captions and failure notices
    """

    def __init__(
        self,
        chat: ChatClient,
        resolver: StreamResolver,
        fetcher: Fetcher,
        bot_username: str = "",
    ):
        self.chat = chat
        self.resolver = resolver
        self.fetcher = fetcher
        self.bot_username = bot_username

    async def handle(self, message: InboundMessage) -> RelayOutcome:
        """
        Run the relay pipeline for one message.

        Never raises: every failure ends in a Failed outcome and at most one
        reply to the chat.
        """
        ref = recognize(message.text)
        if ref is None:
            logger.info(f"[RELAY] chat={message.chat_id} msg={message.message_id}: not a youtube url")
            return RelayOutcome.not_a_match()

        logger.info(f"[RELAY] chat={message.chat_id} msg={message.message_id}: got youtube url {ref.url}")
        stage = Stage.RESOLVE
        try:
            selected = await self.resolver.resolve(ref)

            stage = Stage.FETCH
            artifact = await self.fetcher.fetch(selected)

            stage = Stage.UPLOAD
            try:
                await self.chat.send_upload_action(message.chat_id)
                await self.chat.send_video(
                    message.chat_id,
                    artifact.path,
                    caption=self._caption(selected),
                    reply_to=message.message_id,
                )
            finally:
                if artifact.discard():
                    logger.debug(f"[RELAY] Removed {artifact.path}")

        except RelayError as e:
            return await self._fail(message, e.stage, e.reason, ref.video_id, e)
        except Exception as e:
            return await self._fail(message, stage, UNEXPECTED_REASON, ref.video_id, e)

        logger.info(f"[RELAY] Video sent: {ref.video_id} (chat={message.chat_id})")
        return RelayOutcome.sent(ref.video_id)

    def _caption(self, selected: SelectedRendition) -> str:
        lines = []
        if selected.title:
            lines.append(selected.title)
        signature = f"Downloaded by {self.bot_username}" if self.bot_username else "Downloaded"
        lines.append(f"{signature} · {selected.rendition.quality_label or 'unknown quality'}")
        return "\n".join(lines)

    def failure_text(self, stage: Stage, reason: str) -> str:
        text = FAILURE_MESSAGES.get((stage, reason), FALLBACK_FAILURE_MESSAGE)
        text = f"{text} {get_random_cat_emoji()}"
        if self.bot_username:
            text = f"{text}\n\n{self.bot_username}"
        return text

    async def _fail(
        self,
        message: InboundMessage,
        stage: Stage,
        reason: str,
        media_id: str,
        error: Exception,
    ) -> RelayOutcome:
        detail = str(error) or type(error).__name__
        logger.error(
            f"[RELAY] ✗ {stage.value} failed for {media_id} (chat={message.chat_id}): "
            f"{reason} - {detail}",
            exc_info=reason == UNEXPECTED_REASON,
        )
        await self._notify_failure(message, stage, reason)
        return RelayOutcome.failed(stage, reason, media_id=media_id, detail=detail)

    async def _notify_failure(self, message: InboundMessage, stage: Stage, reason: str) -> bool:
        try:
            await self.chat.send_message(
                message.chat_id,
                self.failure_text(stage, reason),
                reply_to=message.message_id,
            )
            return True
        except Exception as e:
            logger.debug(f"[RELAY] Failure notice not delivered to {message.chat_id}: {e}")
            return False


__all__ = ['RelayDispatcher', 'CAT_EMOJIS', 'get_random_cat_emoji']
