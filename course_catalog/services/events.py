"""Structured event helpers shared across the catalog."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_EVENT_LOGGER = logging.getLogger("course_catalog.events")

_VALUE_LIMIT = 200


def sanitize_context_value(value: Any) -> Any:
    """Return a JSON-serialisable representation for *value*."""

    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return normalize_context(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        joined = ", ".join(str(item) for item in value)
    else:
        joined = str(value)
    trimmed = joined.strip()
    if not trimmed:
        return None
    return trimmed[:_VALUE_LIMIT] + ("…" if len(trimmed) > _VALUE_LIMIT else "")


def normalize_context(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty entries and sanitise the remaining values."""

    if not values:
        return {}
    normalised: Dict[str, Any] = {}
    for key, raw_value in values.items():
        if not key:
            continue
        value = sanitize_context_value(raw_value)
        if value is None or value == "":
            continue
        normalised[str(key)] = value
    return normalised


def emit_structured_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    correlation: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.DEBUG,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Log *message* with its payload flattened into ``key=value`` pairs."""

    base_message = str(message).strip()
    normalised_payload = normalize_context(payload)
    normalised_correlation = normalize_context(correlation)
    combined = {**normalised_correlation, **normalised_payload}
    if duration_ms is not None:
        combined["duration_ms"] = round(float(duration_ms), 3)
    details_text = ", ".join(f"{key}={value}" for key, value in combined.items())
    display_message = f"[{event_type}] {base_message}" if event_type else base_message
    log_message = f"{display_message} ({details_text})" if details_text else display_message
    extra: Dict[str, Any] = {
        "catalog_event": base_message,
        "catalog_event_type": event_type or "",
    }
    if normalised_payload:
        extra["catalog_payload"] = normalised_payload
    if normalised_correlation:
        extra["catalog_correlation"] = normalised_correlation
    logger.log(level, log_message, extra=extra)


def emit_db_event(action: str, **kwargs: Any) -> None:
    """Emit a structured database event."""

    emit_structured_event("DB_QUERY", action, **kwargs)


def emit_file_event(operation: str, **kwargs: Any) -> None:
    """Emit a structured content-store event."""

    emit_structured_event("FILE_OP", operation, **kwargs)


__all__ = [
    "DEFAULT_EVENT_LOGGER",
    "emit_db_event",
    "emit_file_event",
    "emit_structured_event",
    "normalize_context",
    "sanitize_context_value",
]
