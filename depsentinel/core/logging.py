"""structlog on top of stdlib logging, rendered to stderr.

stdout is reserved for scan output, so every handler here writes to stderr.
"""

from __future__ import annotations

import logging
import logging.config
import os
import sys

import structlog

LOG_FORMATS = ("console", "plain", "json")

# Chatty third-party loggers held at WARNING regardless of the chosen level.
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def _pre_chain(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors.append(structlog.processors.dict_tracebacks)
    else:
        processors.append(structlog.processors.format_exc_info)
    processors.append(structlog.processors.UnicodeDecoder())
    return processors


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    colors = log_format == "console" and sys.stderr.isatty()
    return structlog.dev.ConsoleRenderer(colors=colors)


def setup_logging(level: str | None = None) -> None:
    """Configure structlog and stdlib logging for the CLI.

    Environment:
        DEPSENTINEL_LOG_LEVEL   level name, default WARNING
        DEPSENTINEL_LOG_FORMAT  console | plain | json, default console

    *level* wins over ``DEPSENTINEL_LOG_LEVEL``. An unknown format falls
    back to console.
    """
    log_level = (level or os.environ.get("DEPSENTINEL_LOG_LEVEL") or "WARNING").upper()
    log_format = os.environ.get("DEPSENTINEL_LOG_FORMAT", "console").lower()
    if log_format not in LOG_FORMATS:
        log_format = "console"

    pre_chain = _pre_chain(json_output=log_format == "json")

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    loggers: dict[str, dict[str, str]] = {"depsentinel": {"level": log_level}}
    loggers.update({name: {"level": "WARNING"} for name in _QUIET_LOGGERS})

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "depsentinel": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "depsentinel",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": loggers,
        }
    )
