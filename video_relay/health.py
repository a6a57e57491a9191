"""
HTTP health check server for deployment platforms that probe a port.

Runs next to the Telegram polling loop in the same event loop.
"""

import asyncio
import logging
from typing import Callable

from aiohttp import web

logger = logging.getLogger(__name__)

SERVICE_NAME = "tubecat-relay"
VERSION = "1.0"


def create_health_app(status: Callable[[], dict]) -> web.Application:
    """
    Build the health check application.

    Endpoints:
        GET /        : 200 with a short status line
        GET /health  : 200 with JSON status, extended by status()

    Args:
        status: Returns extra fields for the /health payload
    """

    async def handle_root(request: web.Request) -> web.Response:
        return web.Response(
            text="TubeCat is running! 😺\nYouTube relay bot is active.",
            status=200,
        )

    async def handle_health(request: web.Request) -> web.Response:
        health_data = {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": VERSION,
        }
        health_data.update(status())
        return web.json_response(health_data, status=200)

    app = web.Application()
    app.router.add_get('/', handle_root)
    app.router.add_get('/health', handle_health)
    return app


async def serve_health(app: web.Application, port: int) -> None:
    """Serve app on 0.0.0.0:port until cancelled."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', port)
    await site.start()
    logger.info(f"[HEALTH] ✓ Health check server started on http://0.0.0.0:{port}")

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        logger.info("[HEALTH] Health check server shutting down...")
        raise
    finally:
        await runner.cleanup()


__all__ = ['create_health_app', 'serve_health']
