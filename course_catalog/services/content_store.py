"""Byte storage for uploaded material and sourcecast payloads."""

from __future__ import annotations

import contextlib
import logging
import re
import shutil
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Protocol, Union

from ..config import AppConfig
from .errors import StoreFailure
from .events import emit_file_event


LOGGER = logging.getLogger(__name__)

_UPLOAD_CHUNK_SIZE = 1024 * 1024

Blob = Union[bytes, BinaryIO]


def slugify(value: str) -> str:
    """Return a filesystem-friendly representation of *value*."""

    value = value.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value).strip("-")
    return value or "item"


def safe_filename(filename: str) -> str:
    """Return *filename* reduced to a slugged stem plus its lowercase suffix."""

    name = Path(filename or "").name
    suffix = Path(name).suffix.lower()
    if not re.fullmatch(r"\.[a-z0-9]{1,10}", suffix):
        suffix = ""
    stem = name[: -len(suffix)] if suffix else name
    return f"{slugify(stem)}{suffix}"


@dataclass(frozen=True)
class ContentDescriptor:
    """Metadata accompanying a stored payload."""

    filename: str
    kind: str
    content_type: Optional[str] = None


class ContentStore(Protocol):
    """Protocol describing a byte store for uploaded files."""

    def store(self, blob: Blob, descriptor: ContentDescriptor) -> str:
        """Persist *blob* and return its location."""

    def delete(self, location: str) -> None:
        """Remove the payload at *location*; absent locations are not an error."""

    def exists(self, location: str) -> bool:
        """Return ``True`` when *location* currently holds a payload."""

    def validate_location(self, location: str) -> None:
        """Raise :class:`ValueError` unless *location* is addressable by this store."""


class LocalContentStore:
    """Content store writing payloads below ``config.content_root``.

    Locations are POSIX paths relative to the root, of the form
    ``<kind>/<timestamp>-<token>/<filename>``.
    """

    def __init__(self, config: AppConfig) -> None:
        self._root = config.content_root.resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, location: str) -> Path:
        """Return the absolute path for *location*.

        Raises :class:`ValueError` if the location escapes the content root.
        """

        candidate = Path(location)
        if candidate.is_absolute():
            raise ValueError(f"Content location '{location}' must be relative")
        resolved = (self._root / candidate).resolve()
        if not resolved.is_relative_to(self._root):
            raise ValueError(f"Content location '{location}' escapes the content root")
        if resolved == self._root:
            raise ValueError("Content location must name a file")
        return resolved

    def _build_location(self, descriptor: ContentDescriptor) -> str:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        token = uuid.uuid4().hex[:12]
        return f"{slugify(descriptor.kind)}/{stamp}-{token}/{safe_filename(descriptor.filename)}"

    def store(self, blob: Blob, descriptor: ContentDescriptor) -> str:
        location = self._build_location(descriptor)
        target = self.resolve(location)
        start = time.perf_counter()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(blob, (bytes, bytearray)):
                target.write_bytes(bytes(blob))
            else:
                if hasattr(blob, "seek"):
                    with contextlib.suppress(OSError, ValueError):
                        blob.seek(0)
                with target.open("wb") as buffer:
                    shutil.copyfileobj(blob, buffer, length=_UPLOAD_CHUNK_SIZE)
        except OSError as error:
            emit_file_event(
                "store_failed",
                payload={"location": location, "error": str(error)},
                level=logging.ERROR,
            )
            raise StoreFailure(f"Unable to store '{descriptor.filename}': {error}") from error

        emit_file_event(
            "store",
            payload={
                "location": location,
                "kind": descriptor.kind,
                "content_type": descriptor.content_type,
                "size": target.stat().st_size,
            },
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )
        LOGGER.debug("Stored %s payload at %s", descriptor.kind, location)
        return location

    def delete(self, location: str) -> None:
        try:
            target = self.resolve(location)
        except ValueError as error:
            raise StoreFailure(f"Refusing to delete '{location}': {error}", location=location) from error

        start = time.perf_counter()
        existed = target.exists()
        try:
            target.unlink(missing_ok=True)
            parent = target.parent
            if parent != self._root and parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
        except OSError as error:
            emit_file_event(
                "delete_failed",
                payload={"location": location, "error": str(error)},
                level=logging.ERROR,
            )
            raise StoreFailure(f"Unable to delete '{location}': {error}", location=location) from error

        emit_file_event(
            "delete",
            payload={"location": location, "existed": existed},
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )
        if not existed:
            LOGGER.debug("Content at %s was already absent", location)

    def validate_location(self, location: str) -> None:
        self.resolve(location)

    def exists(self, location: str) -> bool:
        try:
            return self.resolve(location).is_file()
        except ValueError:
            return False


__all__ = [
    "Blob",
    "ContentDescriptor",
    "ContentStore",
    "LocalContentStore",
    "safe_filename",
    "slugify",
]
