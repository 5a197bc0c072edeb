import logging
import sys

from loguru import logger

from oni.core.log_levels import CUSTOM_LOG_LEVELS, STANDARD_LOG_LEVELS
from oni.core.models import settings

logging.getLogger("asyncio").setLevel(logging.WARNING)


def setupLogger(level: str):
    # Configure custom log levels
    for level_name, level_config in CUSTOM_LOG_LEVELS.items():
        logger.level(
            level_name,
            no=level_config["no"],
            icon=level_config["icon"],
            color=level_config["loguru_color"],
        )

    # Configure standard log levels (override defaults)
    for level_name, level_config in STANDARD_LOG_LEVELS.items():
        logger.level(
            level_name, icon=level_config["icon"], color=level_config["loguru_color"]
        )

    log_format = (
        "<white>{time:YYYY-MM-DD}</white> <magenta>{time:HH:mm:ss}</magenta> | "
        "<level>{level.icon}</level> <level>{level}</level> | "
        "<cyan>{module}</cyan>.<cyan>{function}</cyan> - <level>{message}</level>"
    )

    handlers = [
        {
            "sink": sys.stderr,
            "level": level,
            "format": log_format,
            "backtrace": False,
            "diagnose": False,
        }
    ]

    if settings.LOG_TO_FILE:
        try:
            settings.log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                {
                    "sink": settings.log_path,
                    "level": "DEBUG",
                    "format": log_format,
                    "rotation": "10 MB",
                    "retention": 3,
                    "compression": None,
                    "backtrace": False,
                    "diagnose": True,
                }
            )
        except OSError as e:
            print(f"Log file disabled, cannot create {settings.log_path}: {e}")

    logger.configure(handlers=handlers)


setupLogger(settings.LOG_LEVEL)


def log_provider_error(provider_name: str, step: str, media_id, error: Exception):
    logger.warning(
        f"Exception during {step} for media {media_id} with {provider_name}, the site may be down or its layout changed: {error}"
    )
