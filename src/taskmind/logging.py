"""Logging utilities."""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any

from rich.logging import RichHandler


_session_var: contextvars.ContextVar[str] = contextvars.ContextVar("taskmind_session", default="-")
_node_var: contextvars.ContextVar[str] = contextvars.ContextVar("taskmind_node", default="-")


class _ContextFilter(logging.Filter):
    """Inject session context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.session = _session_var.get()  # type: ignore[attr-defined]
        record.node = _node_var.get()  # type: ignore[attr-defined]
        return True


@contextlib.contextmanager
def session_context(*, session_id: str, node_id: str | None = None) -> Any:
    """Temporarily bind session context for structured logging.

    Args:
        session_id: Session identifier.
        node_id: Optional node the current operation targets.
    """

    token_session = _session_var.set(session_id)
    token_node = _node_var.set(node_id or "-")
    try:
        yield
    finally:
        _session_var.reset(token_session)
        _node_var.reset(token_node)


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Logging level name.
    """

    handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
    handler.addFilter(_ContextFilter())

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s session=%(session)s node=%(node)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate handlers if configure_logging is called multiple times
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if isinstance(h, RichHandler):
                h.addFilter(_ContextFilter())
                h.setFormatter(formatter)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log an exception with optional structured context."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
