"""Persistence helpers backed by SQLite."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import AppConfig
from .errors import StoreFailure


@dataclass
class ActorRecord:
    id: int
    name: str
    role: str


@dataclass
class GroupRecord:
    id: int
    name: str
    leader_id: Optional[int]
    mentor_id: Optional[int]


@dataclass
class CategoryRecord:
    id: int
    name: str
    description: str
    category_id: Optional[int]
    uploader_id: Optional[int]
    inserted_at: str
    uploader: Optional[ActorRecord] = None


@dataclass
class MaterialRecord:
    id: int
    title: str
    description: str
    file: str
    category_id: Optional[int]
    uploader_id: Optional[int]
    inserted_at: str
    uploader: Optional[ActorRecord] = None


@dataclass
class SourcecastRecord:
    id: int
    title: str
    description: str
    audio: str
    uploader_id: Optional[int]
    inserted_at: str
    uploader: Optional[ActorRecord] = None


_MISSING = object()

_UPLOADER_COLUMNS = """
    actors.id AS uploader_ref,
    actors.name AS uploader_name,
    actors.role AS uploader_role
"""

_CATEGORY_SELECT = f"""
    SELECT
        categories.id AS id,
        categories.name AS name,
        categories.description AS description,
        categories.category_id AS category_id,
        categories.uploader_id AS uploader_id,
        categories.inserted_at AS inserted_at,
        {_UPLOADER_COLUMNS}
    FROM categories
    LEFT JOIN actors ON actors.id = categories.uploader_id
"""

_MATERIAL_SELECT = f"""
    SELECT
        materials.id AS id,
        materials.title AS title,
        materials.description AS description,
        materials.file AS file,
        materials.category_id AS category_id,
        materials.uploader_id AS uploader_id,
        materials.inserted_at AS inserted_at,
        {_UPLOADER_COLUMNS}
    FROM materials
    LEFT JOIN actors ON actors.id = materials.uploader_id
"""

_SOURCECAST_SELECT = f"""
    SELECT
        sourcecasts.id AS id,
        sourcecasts.title AS title,
        sourcecasts.description AS description,
        sourcecasts.audio AS audio,
        sourcecasts.uploader_id AS uploader_id,
        sourcecasts.inserted_at AS inserted_at,
        {_UPLOADER_COLUMNS}
    FROM sourcecasts
    LEFT JOIN actors ON actors.id = sourcecasts.uploader_id
"""


LOGGER = logging.getLogger(__name__)


def _split_uploader(row: sqlite3.Row) -> Tuple[Dict[str, Any], Optional[ActorRecord]]:
    values = dict(row)
    ref = values.pop("uploader_ref", None)
    name = values.pop("uploader_name", None)
    role = values.pop("uploader_role", None)
    uploader = ActorRecord(id=int(ref), name=name, role=role) if ref is not None else None
    return values, uploader


def _category_from_row(row: sqlite3.Row) -> CategoryRecord:
    values, uploader = _split_uploader(row)
    return CategoryRecord(**values, uploader=uploader)


def _material_from_row(row: sqlite3.Row) -> MaterialRecord:
    values, uploader = _split_uploader(row)
    return MaterialRecord(**values, uploader=uploader)


def _sourcecast_from_row(row: sqlite3.Row) -> SourcecastRecord:
    values, uploader = _split_uploader(row)
    return SourcecastRecord(**values, uploader=uploader)


def _parent_clause(column: str, parent_id: Optional[int]) -> Tuple[str, Tuple[Any, ...]]:
    # ``= NULL`` never matches in SQL, so root level needs its own predicate.
    if parent_id is None:
        return f"{column} IS NULL", ()
    return f"{column} = ?", (parent_id,)


class CatalogRepository:
    """Row level access to actors, groups, folders, materials and sourcecasts.

    Every public method opens its own connection and commits on success, so
    each call is one transaction. ``sqlite3`` failures surface as
    :class:`StoreFailure`.
    """

    #: Rows removed by the store together with a deleted category.
    delete_category_cascades_to: Tuple[str, ...] = ("categories", "materials")

    def __init__(
        self,
        config: AppConfig,
        *,
        event_emitter: Optional[Callable[..., None]] = None,
    ) -> None:
        self._db_path = config.database_file
        self._event_emitter: Optional[Callable[..., None]] = event_emitter

    def configure_event_emitter(self, emitter: Optional[Callable[..., None]]) -> None:
        """Register the callable responsible for emitting database events."""

        self._event_emitter = emitter

    @contextlib.contextmanager
    def _track_db_event(self, action: str, **payload: Any):
        """Emit a structured event capturing execution time for a DB action."""

        if self._event_emitter is None:
            yield payload
            return

        start = time.perf_counter()
        event_payload: Dict[str, Any] = dict(payload)
        error: BaseException | None = None
        try:
            yield event_payload
        except Exception as exc:
            error = exc
            event_payload.setdefault("status", "error")
            event_payload.setdefault("error", f"{exc.__class__.__name__}: {exc}")
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            if error is None:
                event_payload.setdefault("status", "ok")
            filtered = {
                key: value for key, value in event_payload.items() if value is not None
            }
            self._event_emitter(action, payload=filtered, duration_ms=duration_ms)

    @staticmethod
    def _summarize_sql(statement: str) -> str:
        collapsed = " ".join(statement.strip().split())
        return collapsed[:180] + ("…" if len(collapsed) > 180 else "")

    def _execute(
        self,
        connection: sqlite3.Connection,
        statement: str,
        parameters: Sequence[Any] | Tuple[Any, ...] | None = None,
        *,
        action: str,
        table: Optional[str] = None,
    ) -> sqlite3.Cursor:
        params: Tuple[Any, ...] = tuple(parameters) if parameters else ()
        with self._track_db_event(
            action,
            table=table,
            sql=self._summarize_sql(statement),
            parameter_count=len(params),
        ) as event:
            try:
                cursor = connection.execute(statement, params)
            except sqlite3.Error as exc:
                LOGGER.error("Statement %s failed: %s", action, exc)
                raise StoreFailure(f"Database operation '{action}' failed: {exc}") from exc
            if cursor.rowcount >= 0:
                event.setdefault("rowcount", int(cursor.rowcount))
            return cursor

    def _connect(self) -> sqlite3.Connection:
        LOGGER.debug("Opening SQLite connection to %s", self._db_path)
        try:
            connection = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StoreFailure(f"Unable to open database '{self._db_path}': {exc}") from exc
        connection.row_factory = sqlite3.Row
        self._execute(connection, "PRAGMA foreign_keys = ON", action="pragma_foreign_keys")
        return connection

    @contextlib.contextmanager
    def _transaction(self):
        connection = self._connect()
        try:
            with connection:
                yield connection
        except sqlite3.Error as exc:
            raise StoreFailure(f"Transaction failed: {exc}") from exc
        finally:
            connection.close()

    def _fetch_one(
        self,
        statement: str,
        parameters: Tuple[Any, ...],
        *,
        action: str,
        table: str,
    ) -> Optional[sqlite3.Row]:
        with self._transaction() as connection:
            cursor = self._execute(connection, statement, parameters, action=action, table=table)
            return cursor.fetchone()

    def _fetch_all(
        self,
        statement: str,
        parameters: Tuple[Any, ...] | None,
        *,
        action: str,
        table: str,
    ) -> List[sqlite3.Row]:
        with self._transaction() as connection:
            cursor = self._execute(connection, statement, parameters, action=action, table=table)
            return cursor.fetchall()

    def _insert(
        self,
        statement: str,
        parameters: Tuple[Any, ...],
        *,
        action: str,
        table: str,
    ) -> int:
        with self._transaction() as connection:
            cursor = self._execute(connection, statement, parameters, action=action, table=table)
            return int(cursor.lastrowid)

    def _delete(self, table: str, record_id: int) -> int:
        with self._track_db_event(f"remove_{table}", table=table, record_id=record_id) as event:
            with self._transaction() as connection:
                cursor = self._execute(
                    connection,
                    f"DELETE FROM {table} WHERE id = ?",
                    (record_id,),
                    action=f"{table}.delete",
                    table=table,
                )
                affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
                LOGGER.debug("Removed %s id=%s (rows=%s)", table, record_id, affected)
                event.update({"result": "deleted", "rowcount": int(affected)})
                return int(affected)

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------
    def add_actor(self, name: str, role: str) -> int:
        LOGGER.debug("Adding actor '%s' with role=%s", name, role)
        actor_id = self._insert(
            "INSERT INTO actors(name, role) VALUES (?, ?)",
            (name, role),
            action="actors.insert",
            table="actors",
        )
        LOGGER.debug("Actor '%s' inserted with id=%s", name, actor_id)
        return actor_id

    def get_actor(self, actor_id: int) -> Optional[ActorRecord]:
        row = self._fetch_one(
            "SELECT id, name, role FROM actors WHERE id = ?",
            (actor_id,),
            action="actors.get",
            table="actors",
        )
        return ActorRecord(**row) if row else None

    def iter_actors(self) -> Iterable[ActorRecord]:
        rows = self._fetch_all(
            "SELECT id, name, role FROM actors ORDER BY id",
            None,
            action="actors.iter",
            table="actors",
        )
        for row in rows:
            yield ActorRecord(**row)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def find_group_by_name(self, name: str) -> Optional[GroupRecord]:
        LOGGER.debug("Looking up group by name '%s'", name)
        with self._track_db_event("find_group_by_name", table="discussion_groups", name=name) as event:
            row = self._fetch_one(
                "SELECT id, name, leader_id, mentor_id FROM discussion_groups WHERE name = ?",
                (name,),
                action="discussion_groups.lookup_by_name",
                table="discussion_groups",
            )
            event.update({"found": bool(row), "group_id": row["id"] if row else None})
            return GroupRecord(**row) if row else None

    def get_group(self, group_id: int) -> Optional[GroupRecord]:
        row = self._fetch_one(
            "SELECT id, name, leader_id, mentor_id FROM discussion_groups WHERE id = ?",
            (group_id,),
            action="discussion_groups.get",
            table="discussion_groups",
        )
        return GroupRecord(**row) if row else None

    def add_group(
        self,
        name: str,
        *,
        leader_id: Optional[int] = None,
        mentor_id: Optional[int] = None,
    ) -> int:
        LOGGER.debug("Adding group '%s'", name)
        group_id = self._insert(
            "INSERT INTO discussion_groups(name, leader_id, mentor_id) VALUES (?, ?, ?)",
            (name, leader_id, mentor_id),
            action="discussion_groups.insert",
            table="discussion_groups",
        )
        LOGGER.debug("Group '%s' inserted with id=%s", name, group_id)
        return group_id

    def update_group(
        self,
        group_id: int,
        *,
        name: Optional[str] | object = _MISSING,
        leader_id: Optional[int] | object = _MISSING,
        mentor_id: Optional[int] | object = _MISSING,
    ) -> None:
        """Update the provided group columns; omitted ones are left untouched."""

        assignments: List[str] = []
        params: List[Any] = []
        for column, value in (("name", name), ("leader_id", leader_id), ("mentor_id", mentor_id)):
            if value is _MISSING:
                continue
            assignments.append(f"{column} = ?")
            params.append(value)

        with self._track_db_event(
            "update_group", table="discussion_groups", group_id=group_id, changes=len(assignments)
        ) as event:
            if not assignments:
                event["result"] = "no_changes"
                return
            params.append(group_id)
            with self._transaction() as connection:
                self._execute(
                    connection,
                    "UPDATE discussion_groups SET " + ", ".join(assignments) + " WHERE id = ?",
                    params,
                    action="discussion_groups.update",
                    table="discussion_groups",
                )
            LOGGER.debug("Group id=%s updated with assignments=%s", group_id, assignments)
            event["result"] = "updated"

    def iter_groups(self) -> Iterable[GroupRecord]:
        rows = self._fetch_all(
            "SELECT id, name, leader_id, mentor_id FROM discussion_groups ORDER BY id",
            None,
            action="discussion_groups.iter",
            table="discussion_groups",
        )
        for row in rows:
            yield GroupRecord(**row)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def add_category(
        self,
        name: str,
        description: str = "",
        *,
        category_id: Optional[int] = None,
        uploader_id: Optional[int] = None,
    ) -> int:
        LOGGER.debug("Adding category '%s' under parent=%s", name, category_id)
        with self._track_db_event(
            "add_category", table="categories", name=name, parent_id=category_id
        ) as event:
            new_id = self._insert(
                "INSERT INTO categories(name, description, category_id, uploader_id) "
                "VALUES (?, ?, ?, ?)",
                (name, description, category_id, uploader_id),
                action="categories.insert",
                table="categories",
            )
            event["category_id"] = new_id
            LOGGER.debug("Category '%s' inserted with id=%s", name, new_id)
            return new_id

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        LOGGER.debug("Fetching category id=%s", category_id)
        row = self._fetch_one(
            _CATEGORY_SELECT + " WHERE categories.id = ?",
            (category_id,),
            action="categories.get",
            table="categories",
        )
        return _category_from_row(row) if row else None

    def list_categories(self, parent_id: Optional[int]) -> List[CategoryRecord]:
        """Return the direct sub-folders of *parent_id* (``None`` for root)."""

        clause, params = _parent_clause("categories.category_id", parent_id)
        rows = self._fetch_all(
            f"{_CATEGORY_SELECT} WHERE {clause} ORDER BY categories.id",
            params,
            action="categories.list",
            table="categories",
        )
        return [_category_from_row(row) for row in rows]

    def iter_categories(self) -> Iterable[CategoryRecord]:
        rows = self._fetch_all(
            f"{_CATEGORY_SELECT} ORDER BY categories.id",
            None,
            action="categories.iter",
            table="categories",
        )
        for row in rows:
            yield _category_from_row(row)

    def count_subtree_materials(self, category_id: int) -> int:
        """Count materials stored anywhere below *category_id*."""

        row = self._fetch_one(
            """
            WITH RECURSIVE subtree(id) AS (
                SELECT id FROM categories WHERE id = ?
                UNION
                SELECT categories.id FROM categories
                JOIN subtree ON categories.category_id = subtree.id
            )
            SELECT COUNT(*) FROM materials WHERE category_id IN (SELECT id FROM subtree)
            """,
            (category_id,),
            action="materials.count_subtree",
            table="materials",
        )
        return int(row[0]) if row else 0

    def remove_category(self, category_id: int) -> int:
        return self._delete("categories", category_id)

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------
    def add_material(
        self,
        title: str,
        file: str,
        description: str = "",
        *,
        category_id: Optional[int] = None,
        uploader_id: Optional[int] = None,
    ) -> int:
        LOGGER.debug("Adding material '%s' to category=%s", title, category_id)
        with self._track_db_event(
            "add_material", table="materials", title=title, category_id=category_id
        ) as event:
            new_id = self._insert(
                "INSERT INTO materials(title, description, file, category_id, uploader_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (title, description, file, category_id, uploader_id),
                action="materials.insert",
                table="materials",
            )
            event["material_id"] = new_id
            return new_id

    def get_material(self, material_id: int) -> Optional[MaterialRecord]:
        LOGGER.debug("Fetching material id=%s", material_id)
        row = self._fetch_one(
            _MATERIAL_SELECT + " WHERE materials.id = ?",
            (material_id,),
            action="materials.get",
            table="materials",
        )
        return _material_from_row(row) if row else None

    def list_materials(self, category_id: Optional[int]) -> List[MaterialRecord]:
        """Return the materials filed directly in *category_id* (``None`` for root)."""

        clause, params = _parent_clause("materials.category_id", category_id)
        rows = self._fetch_all(
            f"{_MATERIAL_SELECT} WHERE {clause} ORDER BY materials.id",
            params,
            action="materials.list",
            table="materials",
        )
        return [_material_from_row(row) for row in rows]

    def remove_material(self, material_id: int) -> int:
        return self._delete("materials", material_id)

    # ------------------------------------------------------------------
    # Sourcecasts
    # ------------------------------------------------------------------
    def add_sourcecast(
        self,
        title: str,
        audio: str,
        description: str = "",
        *,
        uploader_id: Optional[int] = None,
    ) -> int:
        LOGGER.debug("Adding sourcecast '%s'", title)
        return self._insert(
            "INSERT INTO sourcecasts(title, description, audio, uploader_id) VALUES (?, ?, ?, ?)",
            (title, description, audio, uploader_id),
            action="sourcecasts.insert",
            table="sourcecasts",
        )

    def get_sourcecast(self, sourcecast_id: int) -> Optional[SourcecastRecord]:
        LOGGER.debug("Fetching sourcecast id=%s", sourcecast_id)
        row = self._fetch_one(
            _SOURCECAST_SELECT + " WHERE sourcecasts.id = ?",
            (sourcecast_id,),
            action="sourcecasts.get",
            table="sourcecasts",
        )
        return _sourcecast_from_row(row) if row else None

    def list_sourcecasts(self) -> List[SourcecastRecord]:
        rows = self._fetch_all(
            f"{_SOURCECAST_SELECT} ORDER BY sourcecasts.id",
            None,
            action="sourcecasts.list",
            table="sourcecasts",
        )
        return [_sourcecast_from_row(row) for row in rows]

    def remove_sourcecast(self, sourcecast_id: int) -> int:
        return self._delete("sourcecasts", sourcecast_id)


__all__ = [
    "ActorRecord",
    "CatalogRepository",
    "CategoryRecord",
    "GroupRecord",
    "MaterialRecord",
    "SourcecastRecord",
]
