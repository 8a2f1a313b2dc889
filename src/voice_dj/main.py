#!/usr/bin/env python3
"""Entry point: load settings, configure logging, run the voice DJ until it exits.

Exit codes: 0 on a clean stop, 1 when the bot cannot run (missing token or
a fatal error), 2 when the configuration does not validate.
"""

from __future__ import annotations

import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError as SettingsValidationError

from voice_dj.domain.shared.messages import ErrorMessages, LogTemplates
from voice_dj.utils.formatting import format_size

if TYPE_CHECKING:
    from voice_dj.config.settings import Settings

_LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_CONFIG = 2

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO", config_path: Path = _LOGGING_CONFIG_PATH) -> None:
    resolved_level = getattr(logging, log_level.upper(), logging.INFO)

    try:
        with open(config_path) as f:
            config = json.load(f)
        logging.config.dictConfig(config)
    except (FileNotFoundError, json.JSONDecodeError, ValueError):
        logging.basicConfig(
            level=resolved_level,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.warning(LogTemplates.LOGGING_CONFIG_FALLBACK, config_path)

    logging.getLogger().setLevel(resolved_level)


def load_settings() -> Settings | None:
    """Read settings, logging each invalid field; None when they do not validate."""
    from voice_dj.config.settings import get_settings

    try:
        return get_settings()
    except SettingsValidationError as e:
        setup_logging()
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            logger.error(LogTemplates.SETTINGS_INVALID, location, error["msg"])
        return None


def log_startup_summary(settings: Settings) -> None:
    logger.info(LogTemplates.BOT_STARTING, settings.environment)

    cache = settings.cache
    if cache.enabled:
        logger.info(
            LogTemplates.STARTUP_CACHE_ENABLED,
            cache.directory,
            format_size(cache.maximum_size),
            cache.expire_time,
        )
    else:
        logger.info(LogTemplates.STARTUP_CACHE_DISABLED)

    channel = settings.discord.default_channel or "-"
    logger.info(LogTemplates.STARTUP_COMMANDS, settings.general.command_prefix, channel)


def run(settings: Settings) -> int:
    """Build the container and bot, then block until the bot stops."""
    token_value = settings.discord.token.get_secret_value()
    if not token_value:
        logger.error(ErrorMessages.DISCORD_TOKEN_REQUIRED)
        return EXIT_FAILURE

    from voice_dj.config.container import create_container
    from voice_dj.infrastructure.discord.bot import create_bot

    container = create_container(settings)
    bot = create_bot(container, settings)

    try:
        bot.run_with_graceful_shutdown(token_value)
    except KeyboardInterrupt:
        logger.info(LogTemplates.BOT_KEYBOARD_INTERRUPT)
    except Exception as e:
        logger.exception(LogTemplates.BOT_FATAL_ERROR, e)
        return EXIT_FAILURE

    logger.info(LogTemplates.BOT_STOPPED)
    return EXIT_OK


def main() -> int:
    settings = load_settings()
    if settings is None:
        return EXIT_BAD_CONFIG

    setup_logging(settings.log_level)
    log_startup_summary(settings)
    return run(settings)


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
