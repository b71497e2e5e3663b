from __future__ import annotations

"""Central logging configuration for dita_l10n.

Import and call :func:`setup_logging` at program start-up (the CLI does).
Library code only ever uses ``logging.getLogger(__name__)``.
"""

import logging
import logging.config
import os
import sys
from typing import Optional

from dita_l10n.config import ConfigManager

__all__ = ["setup_logging"]


def setup_logging(config_manager: Optional[ConfigManager] = None) -> None:
    """Configure logging for the application using configuration from YAML files."""
    log_dir = os.environ.get("DITA_L10N_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "dita_l10n.log")

    try:
        config_manager = config_manager or ConfigManager()
        logging_config = config_manager.get_logging_config()

        if logging_config and isinstance(logging_config, dict) and logging_config.get("version"):
            if "handlers" in logging_config and "file" in logging_config["handlers"]:
                logging_config["handlers"]["file"]["filename"] = log_file

            logging.config.dictConfig(logging_config)
            logging.info("===== Logging initialised from config files =====")
        else:
            _setup_minimal_logging()
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        # dictConfig reports every configuration problem through these types
        print(f"Error loading logging config: {exc}", file=sys.stderr)
        _setup_minimal_logging()

    _apply_debug_overrides()


def _setup_minimal_logging() -> None:
    """Set up minimal console-only logging when config is unavailable."""
    minimal_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": "INFO",
            },
        },
        "root": {
            "level": "INFO",
            "handlers": ["console"],
        },
    }

    logging.config.dictConfig(minimal_config)
    logging.error("===== Logging initialised with minimal fallback (config error) =====")


def _apply_debug_overrides() -> None:
    """Apply environment-driven module-specific debug overrides.

    Supports:
    - DITA_L10N_DEBUG_MODULES=comma,separated,logger,names -> DEBUG for listed loggers
    """
    extra_modules = os.environ.get("DITA_L10N_DEBUG_MODULES", "").strip()
    targets = [m.strip() for m in extra_modules.split(",") if m.strip()]
    for name in targets:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        # Ensure at least one handler emits DEBUG for this logger
        has_debug_handler = any(h.level <= logging.DEBUG for h in logger.handlers)
        if not has_debug_handler:
            h = logging.StreamHandler()
            h.setLevel(logging.DEBUG)
            h.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
            logger.addHandler(h)
        logger.info("Debug override active for logger '%s'", name)
