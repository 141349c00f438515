"""Bootstrap logic that prepares runtime directories and the SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from . import config as config_module
from .config import AppConfig, load_config

LOGGER = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


_SCHEMA = """
PRAGMA foreign_keys = ON;
CREATE TABLE IF NOT EXISTS actors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    role TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS discussion_groups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    leader_id INTEGER,
    mentor_id INTEGER,
    FOREIGN KEY(leader_id) REFERENCES actors(id) ON DELETE SET NULL,
    FOREIGN KEY(mentor_id) REFERENCES actors(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    category_id INTEGER,
    uploader_id INTEGER,
    inserted_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE CASCADE,
    FOREIGN KEY(uploader_id) REFERENCES actors(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS materials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    file TEXT NOT NULL,
    category_id INTEGER,
    uploader_id INTEGER,
    inserted_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE CASCADE,
    FOREIGN KEY(uploader_id) REFERENCES actors(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS sourcecasts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    audio TEXT NOT NULL,
    uploader_id INTEGER,
    inserted_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    FOREIGN KEY(uploader_id) REFERENCES actors(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS categories_parent_idx ON categories(category_id);
CREATE INDEX IF NOT EXISTS materials_category_idx ON materials(category_id);
"""


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        """Run all bootstrap tasks."""

        LOGGER.debug("Starting bootstrap sequence")
        self._ensure_directories()
        self._ensure_database()
        LOGGER.info("Bootstrap completed successfully")

    def _ensure_directories(self) -> None:
        directories = (
            ("storage", self._config.storage_root),
            ("content", self._config.content_root),
            ("database", self._config.database_file.parent),
        )
        for label, path in directories:
            if not config_module._ensure_writable_directory(path):
                raise BootstrapError(
                    f"Unable to prepare {label} directory '{path}'. It is not writable. "
                    "Update config/default.json or adjust permissions."
                )
            LOGGER.debug("Ensured %s directory exists: %s", label, path)

    def _ensure_database(self) -> None:
        LOGGER.debug("Ensuring database schema at %s", self._config.database_file)
        try:
            connection = sqlite3.connect(self._config.database_file)
        except sqlite3.Error as error:
            raise BootstrapError(
                f"Unable to open database '{self._config.database_file}': {error}"
            ) from error
        try:
            connection.executescript(_SCHEMA)
            connection.commit()
        except sqlite3.Error as error:
            raise BootstrapError(f"Unable to create catalog schema: {error}") from error
        finally:
            connection.close()


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Convenience helper that loads configuration and runs initialization."""

    config = load_config(config_path=config_path)
    bootstrapper = Bootstrapper(config)
    bootstrapper.initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]
