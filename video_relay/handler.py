"""
VideoRelayHandler - connects the message pipeline to the RelayDispatcher.
"""

import logging
from typing import Optional

from pipeline import PipelineContext, PipelineHandler
from video_relay.chat import TelegramChatClient
from video_relay.config import RelayConfig
from video_relay.dispatcher import RelayDispatcher
from video_relay.downloader import Fetcher, RenditionDownloader
from video_relay.models import InboundMessage, OutcomeStatus
from video_relay.resolver import MetadataSource, StreamResolver

logger = logging.getLogger(__name__)


class VideoRelayHandler(PipelineHandler):
    """
    Relays YouTube links from text messages back to the chat as videos.

    The resolver and fetcher are built once; the chat client wraps whichever
    bot delivered the update.
    """

    DEFAULT_PRIORITY = 100

    def __init__(self, config: RelayConfig, metadata: MetadataSource, downloader: Optional[RenditionDownloader] = None):
        super().__init__("VideoRelayHandler")
        self.config = config
        self.resolver = StreamResolver(metadata, timeout=config.resolve_timeout)
        self.fetcher = Fetcher(
            downloader or metadata,
            scratch_dir=config.scratch_dir,
            timeout=config.fetch_timeout,
        )

    def dispatcher_for(self, bot) -> RelayDispatcher:
        return RelayDispatcher(
            chat=TelegramChatClient(bot),
            resolver=self.resolver,
            fetcher=self.fetcher,
            bot_username=self.config.bot_username,
        )

    async def should_process(self, ctx: PipelineContext) -> bool:
        """Only text messages can carry a link."""
        return ctx.message_text is not None

    async def process(self, ctx: PipelineContext) -> None:
        message = ctx.message
        inbound = InboundMessage(
            chat_id=message.chat_id,
            text=message.text,
            message_id=message.message_id,
        )

        outcome = await self.dispatcher_for(ctx.context.bot).handle(inbound)
        ctx.data['relay_outcome'] = outcome
        logger.info(f"[VIDEO] msg={message.message_id} chat={message.chat_id} outcome={outcome.as_dict()}")

        if outcome.status is not OutcomeStatus.NOT_A_MATCH:
            ctx.stop()


__all__ = ['VideoRelayHandler']
