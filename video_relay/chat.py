"""
Chat collaborator: the Telegram calls the relay needs, with errors mapped
to SendError.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

from telegram import Bot, ReplyParameters
from telegram.constants import ChatAction
from telegram.error import BadRequest, NetworkError, TelegramError

from video_relay.errors import SendError, SendErrorKind

logger = logging.getLogger(__name__)


class ChatClient(Protocol):
    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        ...

    async def send_video(
        self,
        chat_id: int,
        path: Path,
        caption: Optional[str] = None,
        reply_to: Optional[int] = None,
    ) -> None:
        ...

    async def send_upload_action(self, chat_id: int) -> None:
        ...


def _reply_parameters(reply_to: Optional[int]) -> Optional[ReplyParameters]:
    if reply_to is None:
        return None
    return ReplyParameters(message_id=reply_to, allow_sending_without_reply=True)


def _as_send_error(error: TelegramError) -> SendError:
    # BadRequest subclasses NetworkError in python-telegram-bot
    if isinstance(error, BadRequest):
        kind = SendErrorKind.REJECTED
    elif isinstance(error, NetworkError):
        kind = SendErrorKind.NETWORK
    else:
        kind = SendErrorKind.REJECTED
    return SendError(kind, f"{type(error).__name__}: {error}")


class TelegramChatClient:
    """Thin wrapper around telegram.Bot used by the dispatcher."""

    def __init__(self, bot: Bot, read_timeout: float = 120, write_timeout: float = 120, connect_timeout: float = 30):
        self.bot = bot
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.connect_timeout = connect_timeout

    async def send_message(self, chat_id: int, text: str, reply_to: Optional[int] = None) -> None:
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_parameters=_reply_parameters(reply_to),
            )
        except TelegramError as e:
            raise _as_send_error(e) from e

    async def send_video(
        self,
        chat_id: int,
        path: Path,
        caption: Optional[str] = None,
        reply_to: Optional[int] = None,
    ) -> None:
        logger.info(f"[CHAT] Uploading {Path(path).name} to chat {chat_id}...")
        try:
            with open(path, 'rb') as video_file:
                await self.bot.send_video(
                    chat_id=chat_id,
                    video=video_file,
                    caption=caption,
                    supports_streaming=True,
                    reply_parameters=_reply_parameters(reply_to),
                    read_timeout=self.read_timeout,
                    write_timeout=self.write_timeout,
                    connect_timeout=self.connect_timeout,
                )
        except TelegramError as e:
            raise _as_send_error(e) from e
        except OSError as e:
            raise SendError(SendErrorKind.REJECTED, f"cannot read {path}: {e}") from e

    async def send_upload_action(self, chat_id: int) -> None:
        """Show "sending video..." in the chat. Failures are only logged."""
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=ChatAction.UPLOAD_VIDEO)
        except TelegramError as e:
            logger.debug(f"[CHAT] Could not send chat action to {chat_id}: {e}")


__all__ = ['ChatClient', 'TelegramChatClient']
