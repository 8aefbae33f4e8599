"""Structured logging for the coordinator and node processes.

Every event is one JSON line. ``setup_logging`` stamps the process identity
(``component`` and, on nodes, ``node_id``) onto all events, including those
from the module-level loggers in ``cluster`` and ``node``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import structlog

DEFAULT_COMPONENT = "berkeleysync"


def _stamp_identity(component: str, node_id: Optional[str]) -> Callable[..., Dict[str, Any]]:
    def processor(_logger, _method, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("component", component)
        if node_id:
            event_dict.setdefault("node_id", node_id)
        return event_dict

    return processor


def setup_logging(
    level: str = "INFO",
    node_id: Optional[str] = None,
    component: str = DEFAULT_COMPONENT,
    log_path: Optional[str | Path] = None,
) -> structlog.BoundLogger:
    """Route structlog through stdlib logging (stderr or ``log_path``) and return the process logger."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level}")

    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    logging.basicConfig(level=numeric_level, format="%(message)s", handlers=[handler], force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _stamp_identity(component, node_id),
            structlog.processors.TimeStamper(fmt="ISO", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(component)


def get_logger(name: str, **context: Any) -> structlog.BoundLogger:
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


def format_timestamp(ts: float) -> str:
    """Render seconds since epoch as 'YYYY-MM-DD HH:MM:SS' (UTC)."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
