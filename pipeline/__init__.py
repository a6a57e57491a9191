"""
Message pipeline for incoming Telegram updates.

Every update flows through the registered handlers, highest priority first.
A handler may stop the run with ctx.stop(); exceptions raised by a handler
are logged here and never reach python-telegram-bot.

Usage:
    from pipeline import MessagePipeline
    from video_relay.handler import VideoRelayHandler

    pipeline = MessagePipeline()
    pipeline.add_handler(VideoRelayHandler(config, metadata))

    # In your message handler:
    await pipeline.run(update, context)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from telegram import Update
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """
    State shared by the handlers of one pipeline run.

    Attributes:
        update: Telegram Update object
        context: Telegram callback context
        should_continue: If False, no further handler runs
        data: Scratch space handlers use to pass results along
    """
    update: Update
    context: ContextTypes.DEFAULT_TYPE
    should_continue: bool = True
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self):
        return self.update.message if self.update else None

    @property
    def message_text(self) -> Optional[str]:
        if self.message:
            return self.message.text
        return None

    def stop(self) -> None:
        """Stop the pipeline after the current handler."""
        self.should_continue = False


class PipelineHandler(ABC):
    """
    Base class for pipeline handlers.

    Subclasses implement process() and may override should_process().
    """

    # 0-100, higher runs first
    DEFAULT_PRIORITY = 50

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self.priority = self.DEFAULT_PRIORITY

    @abstractmethod
    async def process(self, ctx: PipelineContext) -> None:
        """Handle the message. Call ctx.stop() to end the run."""

    async def should_process(self, ctx: PipelineContext) -> bool:
        """Return False to skip this handler for the message."""
        return True


class MessagePipeline:
    """
    Ordered list of handlers applied to every update.

    Args:
        stop_on_error: If True, a handler exception ends the run.
                       If False, the error is logged and the next handler runs.
    """

    def __init__(self, stop_on_error: bool = True):
        self.handlers: list[PipelineHandler] = []
        self.stop_on_error = stop_on_error

    def add_handler(self, handler: PipelineHandler) -> "MessagePipeline":
        """Register a handler, keeping the list sorted by priority (highest first)."""
        self.handlers.append(handler)
        self.handlers.sort(key=lambda h: h.priority, reverse=True)
        logger.debug(f"[PIPELINE] Added handler: {handler.name} (priority: {handler.priority})")
        return self

    def remove_handler(self, handler: PipelineHandler) -> bool:
        try:
            self.handlers.remove(handler)
        except ValueError:
            return False
        logger.debug(f"[PIPELINE] Removed handler: {handler.name}")
        return True

    async def run(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> PipelineContext:
        """
        Run all handlers for one update.

        Returns:
            The PipelineContext after the last handler ran or the run stopped
        """
        ctx = PipelineContext(update=update, context=context)

        for handler in self.handlers:
            if not ctx.should_continue:
                logger.debug(f"[PIPELINE] Stopped before {handler.name}")
                break

            try:
                if not await handler.should_process(ctx):
                    logger.debug(f"[PIPELINE] {handler.name} skipped")
                    continue
                await handler.process(ctx)
            except Exception as e:
                logger.error(f"[PIPELINE] Error in {handler.name}: {type(e).__name__}: {e}", exc_info=True)
                if self.stop_on_error:
                    ctx.stop()

        return ctx


__all__ = [
    'PipelineContext',
    'PipelineHandler',
    'MessagePipeline',
]
