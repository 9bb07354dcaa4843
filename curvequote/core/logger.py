"""
Structured logging for the curve quoting engine

structlog renders every record (JSON or console) on top of stdlib logging.
Once bind_engine_context() has run, every event carries the curve address
and chain id; add_component tags each event with the subpackage that
emitted it.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import EventDict, Processor


PACKAGE = "curvequote"


def add_component(logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag the subpackage that logged the event (curvequote.api.server -> api)"""
    name = event_dict.get("logger") or ""
    parts = name.split(".")

    if parts[-1] == "__main__":
        event_dict.setdefault("component", "cli")
    elif parts[0] == PACKAGE and len(parts) > 1:
        event_dict.setdefault("component", parts[1])
    return event_dict


def bind_engine_context(curve_address: str, chain_id: int) -> None:
    """Attach the curve and chain to every event logged from here on"""
    structlog.contextvars.bind_contextvars(curve_address=curve_address, chain_id=chain_id)


def _renderer(format: str) -> Processor:
    if format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(),
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    output_file: Optional[str] = None
) -> None:
    """
    Configure structlog and the stdlib root logger

    Args:
        level: DEBUG, INFO, WARNING or ERROR (unknown names fall back to INFO)
        format: "json" for machine-readable lines, anything else for console
        output_file: Also write every record here (parent dirs are created)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.root.setLevel(numeric_level)

    if output_file:
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(output_file)
        file_handler.setLevel(numeric_level)
        logging.root.addHandler(file_handler)

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_component,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger bound to `name` (usually __name__)"""
    return structlog.get_logger(name)
