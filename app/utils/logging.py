import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict

from loguru import logger

from app.config.settings import settings
from app.utils.context import get_request_id

CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    "log_dir": "logs",
    "filename": "push-admin.log",
    "level": "info",
    "rotation": "20 MB",
    "retention": "14 days",
    "console_format": "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{extra[request_id]}</cyan> | <level>{message}</level> | {extra}",
    "file_format": "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} | {message} | {extra}",
    "use_json_logs": False,
}

# Standard library loggers routed through loguru, with a floor level so
# per-statement SQL and per-request HTTP chatter stay out of the sync logs.
ROUTED_LOGGERS = {
    "uvicorn": None,
    "uvicorn.error": None,
    "uvicorn.access": None,
    "fastapi": None,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward standard library records to loguru, tagged with the request id."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _attach_request_id(record) -> None:
    record["extra"]["request_id"] = get_request_id() or "app"


def load_logging_config(environment: str, config_path: Path = CONFIG_PATH) -> Dict:
    """Merge the section for ``environment`` from logging_config.json over the defaults."""
    file_config: Dict = {}
    if config_path.exists():
        with open(config_path) as config_file:
            file_config = json.load(config_file)

    section = "production" if environment == "production" else "logger"
    return {**DEFAULT_LOGGING_CONFIG, **file_config.get(section, {})}


def configure_logging(environment: str, level: str):
    config = load_logging_config(environment)
    level = (level or config["level"]).upper()
    log_file = Path(config["log_dir"]) / (
        f"{date.today():%Y-%m-%d}-{config['filename']}"
    )

    logger.remove()
    logger.configure(extra={"request_id": "app"}, patcher=_attach_request_id)

    logger.add(
        sys.stdout,
        enqueue=True,
        backtrace=True,
        level=level,
        format=config["console_format"],
        colorize=True,
    )

    file_options: Dict[str, Any] = {
        "rotation": config["rotation"],
        "retention": config["retention"],
        "enqueue": True,
        "backtrace": True,
        "level": level,
        "colorize": False,
    }
    if config["use_json_logs"] and config["file_format"] == "json":
        file_options["serialize"] = True
    else:
        file_options["format"] = config["file_format"]
    logger.add(str(log_file), **file_options)

    logging.basicConfig(handlers=[InterceptHandler()], level=0)
    for name, floor in ROUTED_LOGGERS.items():
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        if floor is not None:
            std_logger.setLevel(floor)

    return logger


app_logger = configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)


def get_logger():
    """
    Application logger. Safe to hold at module level: every record is stamped
    with the request id current when it is emitted, or ``app`` outside a request.
    """
    return app_logger
