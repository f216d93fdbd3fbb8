r"""JSON log formatting and request ids.

The ``logging`` stage of the client pipeline emits one record per
transport call through ``log_structured``. Attach a
``StructuredFormatter`` to the ``aresguard`` logger to get these records
as JSON lines, each carrying the id of the request that produced it.

Example:
    ```python
    import logging
    from aresguard.utils.structured_logging import StructuredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("aresguard")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    ```

    Tag every record of a unit of work with the same request id:

    ```python
    from aresguard.utils.structured_logging import request_id_scope

    with request_id_scope("checkout-42"):
        response = await client.post("/orders", json=order)
    ```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "clear_request_id",
    "get_request_id",
    "log_structured",
    "new_request_id",
    "request_id_scope",
    "set_request_id",
]

import contextvars
import json
import logging
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "aresguard_request_id", default=None
)

# Attributes of every LogRecord, not copied as extra fields
_RECORD_ATTRIBUTES = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "msecs",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "sinfo",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


def get_request_id() -> str | None:
    """Return the request id of the current context.

    Example:
        ```pycon
        >>> from aresguard.utils.structured_logging import get_request_id, set_request_id
        >>> set_request_id("req-123")
        >>> get_request_id()
        'req-123'

        ```
    """
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    """Set the request id of the current context.

    The id lives in a context variable, so each asyncio task sees the
    value of the context it was created in.
    """
    _request_id.set(request_id)


def clear_request_id() -> None:
    _request_id.set(None)


def new_request_id() -> str:
    """Return a fresh random request id."""
    return uuid.uuid4().hex[:12]


@contextmanager
def request_id_scope(request_id: str | None = None) -> Iterator[str]:
    """Set a request id for the duration of a ``with`` block.

    Args:
        request_id: The id to use. A fresh one is generated if omitted.

    Yields:
        The request id in effect inside the block.

    Example:
        ```pycon
        >>> from aresguard.utils.structured_logging import get_request_id, request_id_scope
        >>> with request_id_scope("abc") as request_id:
        ...     get_request_id() == request_id
        ...
        True

        ```
    """
    token = _request_id.set(request_id or new_request_id())
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


class StructuredFormatter(logging.Formatter):
    """Formatter writing each record as one JSON object.

    Standard fields: ``timestamp`` (ISO 8601, UTC), ``level``,
    ``logger``, ``message``, ``module``, ``function``, ``line``, and
    ``request_id`` when one is set. Fields passed through ``extra`` are
    copied as they are; values that are not JSON serializable are
    written with ``str()``.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from aresguard.utils.structured_logging import StructuredFormatter
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("doc_structured")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.INFO)
        >>> logger.info("Request sent", extra={"method": "GET"})
        >>> '"method": "GET"' in stream.getvalue()
        True

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        request_id = get_request_id()
        if request_id is not None:
            log_data["request_id"] = request_id
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value
        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: ARG002, N802
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log a message with structured fields.

    Args:
        logger: The logger to use.
        level: The log level, e.g. ``logging.DEBUG``.
        message: The log message.
        **extra: Fields added to the record.
    """
    logger.log(level, message, extra=extra)
