"""
Runtime settings read from environment variables.

bot.py calls load_dotenv() before building the config, so a .env file in
the working directory works the same as exported variables.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BOT_USERNAME = '@tubecat_relay_bot'


def _env_number(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw}, using default {default}")
        return default
    return max(minimum, value)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() == 'true'


@dataclass(frozen=True)
class RelayConfig:
    """
    Settings for the relay bot.

    Attributes:
        bot_token: Telegram bot token (TELEGRAM_BOT_TOKEN)
        bot_username: Signature used on captions and error messages
        scratch_dir: Directory downloads are written to
        max_file_size: Largest video accepted for upload, in bytes
        resolve_timeout: Seconds allowed for fetching video metadata
        fetch_timeout: Seconds allowed for one download
        max_concurrent_relays: Updates processed at the same time
        enable_health_check: Run the aiohttp health server
        port: Health server port
    """
    bot_token: Optional[str]
    bot_username: str = DEFAULT_BOT_USERNAME
    scratch_dir: Path = Path(tempfile.gettempdir()) / 'tubecat'
    max_file_size: int = 50 * 1024 * 1024
    resolve_timeout: float = 60.0
    fetch_timeout: float = 300.0
    max_concurrent_relays: int = 8
    enable_health_check: bool = True
    port: int = 8080

    @classmethod
    def from_env(cls) -> "RelayConfig":
        scratch_dir = os.getenv('SCRATCH_DIR')
        return cls(
            bot_token=os.getenv('TELEGRAM_BOT_TOKEN'),
            bot_username=os.getenv('BOT_USERNAME', DEFAULT_BOT_USERNAME),
            scratch_dir=Path(scratch_dir) if scratch_dir else cls.scratch_dir,
            max_file_size=int(_env_number('MAX_FILE_SIZE_MB', 50, 1) * 1024 * 1024),
            resolve_timeout=_env_number('RESOLVE_TIMEOUT', 60.0, 1.0),
            fetch_timeout=_env_number('FETCH_TIMEOUT', 300.0, 1.0),
            max_concurrent_relays=int(_env_number('MAX_CONCURRENT_RELAYS', 8, 1)),
            enable_health_check=_env_flag('ENABLE_HEALTH_CHECK', True),
            port=int(_env_number('PORT', 8080, 1)),
        )

    def validate(self) -> None:
        """Raise ValueError if a required setting is missing."""
        if not self.bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN is not set in .env file")


__all__ = ['RelayConfig']
