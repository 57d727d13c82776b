"""Logging for the coordinator: structlog events rendered by stdlib handlers.

Two environment variables tune the output:
- LOG_FORMAT: "json" (one object per line, for aggregation) or "console"
  (the default when unset).
- LOG_LEVEL: root level name, INFO when unset.

Anything bound with ``structlog.contextvars`` (connection_id, room_code,
player_id) is merged into every event logged while it is bound.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

    from structlog.typing import Processor

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

LOG_FORMATS = ("console", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# uvicorn logs one line per websocket handshake and per HTTP poll of /api/rooms.
_NOISY_LOGGERS = ("uvicorn.access", "websockets.protocol", "httpx", "httpcore")


def _serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace Enum instances (message types, error codes, states) with their values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, dict):
            event_dict[key] = {k: v.value if isinstance(v, Enum) else v for k, v in value.items()}
    return event_dict


def event_processors(*, timestamps: bool = True) -> list[Processor]:
    """Processor chain that runs on every event before a handler formats it.

    Exception formatting is left to the handler formatter so a traceback is
    rendered once per handler.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]
    if timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        _serialize_enums,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    return processors


def configure_structlog(*, timestamps: bool = True) -> None:
    structlog.configure(
        processors=event_processors(timestamps=timestamps),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def _is_test() -> bool:
    return "pytest" in sys.modules


def _env_choice(var: str, default: str, choices: tuple[str, ...]) -> str:
    value = os.environ.get(var, "").strip() or default
    for choice in choices:
        if value.upper() == choice.upper():
            return choice
    msg = f"Invalid {var}={value!r}. Must be one of {', '.join(choices)}."
    raise ValueError(msg)


def _formatter(*, json_mode: bool, colors: bool) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def _log_file_path(log_dir: Path, name: str | None) -> Path:
    timestamp = datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)
    return log_dir / (f"{name}_{timestamp}.log" if name else f"{timestamp}.log")


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
    name: str | None = None,
) -> Path | None:
    """Route structlog through a stdout handler and, optionally, a log file.

    ``level`` overrides LOG_LEVEL. With ``log_dir`` a new file named
    ``<name>_<timestamp>.log`` is opened there (never under pytest) and its
    path returned. Calling again replaces the previous handlers.
    """
    json_mode = _env_choice("LOG_FORMAT", "console", LOG_FORMATS) == "json"
    if level is None:
        level = getattr(logging, _env_choice("LOG_LEVEL", "INFO", LOG_LEVELS))

    configure_structlog()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(_formatter(json_mode=json_mode, colors=sys.stdout.isatty()))
    root_logger.addHandler(stdout_handler)

    if log_dir is None or _is_test():
        return None

    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = _log_file_path(dir_path, name)
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(_formatter(json_mode=json_mode, colors=False))
    root_logger.addHandler(file_handler)
    return file_path
