import logging
import logging.handlers
import pathlib
from typing import Any

import structlog

# Third party loggers that are chatty at INFO
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "aiohttp.access")


def _renderer(log_format: str) -> Any:
    if log_format.lower() == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    config_dir: str = "/config",
) -> None:
    """
    Configure structured logging for the catalog engine.

    Records from aiohttp and botocore go through the stdlib root logger and
    are rendered with the same processors as the engine's own events, so a
    single JSON stream can be shipped as is.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format ("text" or "json")
        log_file: Optional log file name, written under config_dir/logs
        config_dir: Base configuration directory
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = pathlib.Path(config_dir) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_dir / log_file,
                maxBytes=20 * 1024 * 1024,  # 20MB
                backupCount=3,
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(**initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, optionally bound to some context."""
    return structlog.stdlib.get_logger("noovy", **initial_values)


logger = get_logger()
