"""Structured logging helpers with run, phase and unit correlation context.

Every log record carries ``run_id``, ``phase`` and ``unit`` attributes taken
from context variables. The orchestrator submits each unit with a copy of
the caller's context, so worker threads see the run id while the unit they
set stays local to their own copy.
"""

from __future__ import annotations

import contextvars
import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

_UNSET = "-"

_CONTEXT_FIELDS: dict[str, contextvars.ContextVar[str]] = {
    name: contextvars.ContextVar(name, default=_UNSET)
    for name in ("run_id", "phase", "unit")
}

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | run_id=%(run_id)s | phase=%(phase)s | "
    "unit=%(unit)s | %(name)s | %(message)s"
)


class _RunContextFilter(logging.Filter):
    """Copy the correlation fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in _CONTEXT_FIELDS.items():
            setattr(record, name, var.get())
        return True


def configure_structured_logging(level: int = logging.INFO) -> None:
    """Install the correlation format and filter on the root handlers."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    for handler in root_logger.handlers:
        if not any(isinstance(f, _RunContextFilter) for f in handler.filters):
            handler.addFilter(_RunContextFilter())


def set_run_id(run_id: str | None = None) -> str:
    """Set the run correlation id, generating a UUID when none is given."""
    value = run_id or str(uuid.uuid4())
    _CONTEXT_FIELDS["run_id"].set(value)
    return value


def get_run_id() -> str:
    return _CONTEXT_FIELDS["run_id"].get()


def get_unit() -> str:
    """Compilation unit currently being analysed, or ``-``."""
    return _CONTEXT_FIELDS["unit"].get()


@contextmanager
def _field_scope(name: str, value: str) -> Iterator[None]:
    var = _CONTEXT_FIELDS[name]
    token = var.set(value)
    try:
        yield
    finally:
        var.reset(token)


def phase_scope(phase: str):
    """Context manager tagging logs with a pipeline phase (extract, write)."""
    return _field_scope("phase", phase)


def unit_scope(unit: str):
    """Context manager tagging logs with the compilation unit being analysed."""
    return _field_scope("unit", unit)
