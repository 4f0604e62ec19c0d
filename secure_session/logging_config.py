"""
logging_config.py
------------------

Shared logging configuration and helpers for structured logging
throughout the secure session package.  It uses Python's built‑in
``logging`` module so that log output can be captured by standard
handlers or shipped to external systems.  Messages are serialised as
JSON to make them easier to parse downstream.

Import ``logger`` and call its methods instead of ``logging.info``
directly.  The ``log_call`` decorator records entry and exit points at
the DEBUG level without leaking tokens or analytics metadata.
"""

from __future__ import annotations

import json
import logging
import sys
from functools import wraps
from typing import Any, Callable, Dict, Optional

# Module level logger.  Code elsewhere imports this and logs messages
# without repeatedly instantiating new Logger instances.
logger = logging.getLogger("secure_session")

# Headers never written to the logs
SENSITIVE_HEADERS = {"authorization", "x-mfp-analytics-metadata"}

_LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stdout handler to the package logger.

    The handler uses a timestamp, the level name and the raw message.
    Messages are JSON strings so downstream consumers can parse them
    easily.  Calling this more than once does not add duplicate
    handlers; the level is simply updated.

    :param level: level name (``"DEBUG"``, ``"INFO"``...).  Defaults to
        the ``log_level`` setting.
    :return: the configured package logger
    """
    if level is None:
        from secure_session.core.config import get_settings
        level = get_settings().log_level
    logger.setLevel(level.upper())
    if not any(getattr(h, "_secure_session", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handler._secure_session = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


def _sanitize(obj: Any) -> Any:
    """Recursively sanitise objects for logging.

    Prevents tokens, secrets and binary payloads from ending up in the
    logs.  Dictionaries have keys containing 'token', 'secret' or
    'authorization' removed.  Lists and tuples are processed
    element‑wise.  Pydantic models are dumped first.

    Parameters
    ----------
    obj : Any
        Arbitrary Python object to sanitise.

    Returns
    -------
    Any
        A representation of the input suitable for JSON serialisation.
    """
    if isinstance(obj, (bytes, bytearray)):
        return f"<binary {len(obj)} bytes>"
    if isinstance(obj, dict):
        clean: Dict[str, Any] = {}
        for k, v in obj.items():
            if any(keyword in str(k).lower() for keyword in ("token", "secret", "authorization", "metadata")):
                continue
            clean[str(k)] = _sanitize(v)
        return clean
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "model_dump"):
        try:
            return _sanitize(obj.model_dump())
        except Exception:
            return repr(obj)
    try:
        return json.loads(json.dumps(obj))
    except (TypeError, ValueError):
        return str(obj)


def log_call(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to log entry and exit of functions at DEBUG level.

    The messages include the function name and a sanitised snapshot of
    the arguments and return value.

    Examples
    --------

    >>> @log_call
    ... def add(a, b):
    ...     return a + b
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(json.dumps({
                "event": "call_start",
                "function": func.__name__,
                "args": _sanitize(args),
                "kwargs": _sanitize(kwargs),
            }))
        result = func(*args, **kwargs)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(json.dumps({
                "event": "call_end",
                "function": func.__name__,
                "result": _sanitize(result),
            }))
        return result

    return wrapper


def safe_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``headers`` without sensitive entries."""
    return {k: v for k, v in headers.items() if k.lower() not in SENSITIVE_HEADERS}


def log_http_request(method: str, url: str, *, headers: Dict[str, Any] | None = None,
                     body_size: int | None = None, status: int | None = None,
                     duration_ms: float | None = None) -> None:
    """Log an outbound HTTP request at DEBUG level.

    Centralises HTTP request logging so that tokens are removed from
    headers and only high‑level information (method, URL, status and
    duration) is recorded.  The transport calls it before and after
    each request.

    Parameters
    ----------
    method : str
        The HTTP method (GET, POST, etc.)
    url : str
        The URL being requested.
    headers : dict, optional
        Request headers.  Sensitive keys are removed.
    body_size : int, optional
        Size of the request body in bytes.
    status : int, optional
        Response status code (log end only).
    duration_ms : float, optional
        Time taken in milliseconds (log end only).
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    data: Dict[str, Any] = {
        "event": "http_request",
        "method": method,
        "url": url,
    }
    if headers is not None:
        data["headers"] = safe_headers(headers)
    if body_size is not None:
        data["body_size"] = body_size
    if status is not None:
        data["status"] = status
    if duration_ms is not None:
        data["duration_ms"] = round(duration_ms, 2)
    logger.debug(json.dumps(data))
