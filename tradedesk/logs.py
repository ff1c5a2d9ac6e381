from __future__ import annotations

import logging
import logging.config

from tradedesk.config import Settings

_configured = False


def logging_config(settings: Settings) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "[{asctime}] {levelname} {name}: {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(settings.log_dir / "tradedesk.log"),
                "maxBytes": 10 * 1024 * 1024,  # 10MB
                "backupCount": 5,
                "formatter": "verbose",
                "encoding": "utf-8",
            },
        },
        "loggers": {
            "tradedesk": {
                "handlers": ["console", "file"],
                "level": settings.log_level,
                "propagate": False,
            },
        },
    }


def configure_logging(settings: Settings, *, force: bool = False) -> None:
    global _configured
    if _configured and not force:
        return
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(logging_config(settings))
    _configured = True
