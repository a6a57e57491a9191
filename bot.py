#!/usr/bin/env python3
"""
TubeCat - Telegram bot that relays YouTube links as videos.

Watches every chat it can read, downloads the best muxed rendition of each
posted youtube.com link and uploads it back into the chat.
"""

import os
import logging
import asyncio

from dotenv import load_dotenv
from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from pipeline import MessagePipeline
from video_relay.config import RelayConfig
from video_relay.handler import VideoRelayHandler
from video_relay.health import create_health_app, serve_health
from video_relay.youtube import YtDlpClient

# Load environment variables early for logging configuration
load_dotenv()

LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING').upper()
LOG_LEVEL_MAP = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL
}
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=LOG_LEVEL_MAP.get(LOG_LEVEL, logging.WARNING)
)
logger = logging.getLogger(__name__)

# Suppress verbose logging from external libraries
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('telegram').setLevel(logging.WARNING)
logging.getLogger('telegram.ext').setLevel(logging.WARNING)


def build_pipeline(config: RelayConfig) -> MessagePipeline:
    metadata = YtDlpClient(
        download_timeout=config.fetch_timeout,
        max_file_size=config.max_file_size,
    )
    pipeline = MessagePipeline()
    pipeline.add_handler(VideoRelayHandler(config, metadata))
    return pipeline


async def run_bot(config: RelayConfig, pipeline: MessagePipeline) -> None:
    """Poll Telegram and feed every message through the pipeline."""
    logger.info("Starting TubeCat relay bot...")

    async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await pipeline.run(update, context)

    application = (
        Application.builder()
        .token(config.bot_token)
        .concurrent_updates(config.max_concurrent_relays)
        .build()
    )
    application.add_handler(MessageHandler(filters.TEXT, handle_message))

    logger.info(f"Bot started! Relaying up to {config.max_concurrent_relays} link(s) at a time.")

    await application.initialize()
    await application.start()
    await application.updater.start_polling(allowed_updates=[Update.MESSAGE])

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("Bot shutting down...")
    finally:
        await application.updater.stop()
        await application.stop()
        await application.shutdown()


def main() -> None:
    """Run the bot, and the health check server when enabled."""
    config = RelayConfig.from_env()
    config.validate()
    pipeline = build_pipeline(config)

    async def run_all():
        tasks = [run_bot(config, pipeline)]

        if config.enable_health_check:
            logger.info("[MAIN] Health check server enabled")
            app = create_health_app(lambda: {
                "handlers": [h.name for h in pipeline.handlers],
                "scratch_dir": str(config.scratch_dir),
            })
            tasks.append(serve_health(app, config.port))
        else:
            logger.info("[MAIN] Health check server disabled (set ENABLE_HEALTH_CHECK=true to enable)")

        await asyncio.gather(*tasks)

    try:
        asyncio.run(run_all())
    except KeyboardInterrupt:
        logger.info("Received exit signal, shutting down...")


if __name__ == '__main__':
    main()
