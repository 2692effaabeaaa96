# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Logging helpers for the ``community_portal`` logger hierarchy.

Log records may carry upstream error text, request URLs or headers.
:class:`RedactingFilter` scrubs credentials out of them before any handler
formats the record.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

PACKAGE_LOGGER = "community_portal"

REDACTED = "[REDACTED]"

_SENSITIVE_KEY_RE = re.compile(
    r"token|password|secret|authorization|bearer|api[_-]?key|private[_-]?key|tenant[_-]?id",
    re.IGNORECASE,
)
_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+", re.IGNORECASE)
_OPAQUE_SECRET_RE = re.compile(r"\b[A-Za-z0-9]{32,}\b")
_KEYED_VALUE_RE = re.compile(
    r"((?:access[_-]?|refresh[_-]?)?token|secret|password|api[_-]?key)(\s*[:=]\s*)([^\s,;&\"']+)",
    re.IGNORECASE,
)


def is_sensitive_key(key: Any) -> bool:
    return isinstance(key, str) and bool(_SENSITIVE_KEY_RE.search(key))


def redact_text(text: str) -> str:
    """Remove bearer tokens, keyed secrets and long opaque strings from ``text``."""
    text = _BEARER_RE.sub("Bearer " + REDACTED, text)
    text = _KEYED_VALUE_RE.sub(lambda m: m.group(1) + m.group(2) + REDACTED, text)
    return _OPAQUE_SECRET_RE.sub(REDACTED, text)


def redact_mapping(data: Any) -> Any:
    """Recursively replace values of sensitive keys in dicts and lists."""
    if isinstance(data, Mapping):
        return {k: REDACTED if is_sensitive_key(k) else redact_mapping(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [redact_mapping(item) for item in data]
    if isinstance(data, str):
        return redact_text(data)
    return data


class RedactingFilter(logging.Filter):
    """Scrub credentials from the message and arguments of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)
        if isinstance(record.args, Mapping):
            record.args = redact_mapping(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact_mapping(a) for a in record.args)
        return True


def configure_logging(level: str = "WARNING", handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Configure the package logger once per process.

    :param level: Level name such as ``"DEBUG"`` or ``"WARNING"``.
    :type level: :class:`str`
    :param handler: Optional handler; a :class:`logging.StreamHandler` is added when the
        logger has none.
    :type handler: :class:`logging.Handler` | None
    :return: The ``community_portal`` logger.
    :rtype: :class:`logging.Logger`
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if handler is not None:
        logger.addHandler(handler)
    elif not logger.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(stream)
    for h in logger.handlers:
        if not any(isinstance(f, RedactingFilter) for f in h.filters):
            h.addFilter(RedactingFilter())
    return logger
