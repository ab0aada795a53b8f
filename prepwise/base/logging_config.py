import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import sentry_sdk
from pythonjsonlogger import jsonlogger
from sentry_sdk.integrations.logging import LoggingIntegration

# === Configurable via ENV ===
LOG_DIR = Path(os.getenv("LOG_DIR", "./logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
USE_JSON_LOGGING = os.getenv("USE_JSON_LOGGING", "false").lower() == "true"
LOG_TO_FILE = os.getenv("LOG_TO_FILE", "false").lower() == "true"
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
SERVICE_NAME = os.getenv("SERVICE_NAME", "prepwise")
SENTRY_DSN = os.getenv("SENTRY_DSN", "")

_sentry_initialized = False


def get_formatter(use_json: bool, service: str) -> logging.Formatter:
    if use_json:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={"levelname": "level"},
            static_fields={"service": service, "environment": ENVIRONMENT},
        )
        return formatter
    return logging.Formatter(
        fmt=f"%(asctime)s | %(levelname)s | %(name)s | [svc={service}] | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def _init_sentry(logger: logging.Logger) -> None:
    global _sentry_initialized
    if _sentry_initialized or not SENTRY_DSN:
        return

    sentry_logging = LoggingIntegration(
        level=logging.INFO,
        event_level=logging.ERROR
    )
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=ENVIRONMENT,
        integrations=[sentry_logging],
        traces_sample_rate=0.05,
        send_default_pii=False
    )
    _sentry_initialized = True
    logger.info("[Logging] Sentry integration initialized.")


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = LOG_LEVEL,
    use_json: bool = USE_JSON_LOGGING,
    service: str = SERVICE_NAME
) -> logging.Logger:
    """
    Sets up a logger with a stdout handler and, when LOG_TO_FILE is enabled,
    a rotating file handler under LOG_DIR.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Avoid double logging in root

    # Clear old handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = get_formatter(use_json, service)

    # === Stream Handler (STDOUT) ===
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    # === File Handler (Rotating) ===
    if log_file and LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_path = LOG_DIR / log_file
        file_handler = RotatingFileHandler(str(file_path), maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _init_sentry(logger)
    return logger


# === Preconfigured loggers ===
app_logger = setup_logger("app", log_file="app.log")
interview_logger = setup_logger("interview", log_file="interview.log")
prompt_logger = setup_logger("prompt_generation", log_file="prompts.log")
feedback_logger = setup_logger("feedback", log_file="feedback.log")
billing_logger = setup_logger("billing", log_file="billing.log")
