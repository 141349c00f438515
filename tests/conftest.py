from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from course_catalog.bootstrap import Bootstrapper
from course_catalog.config import AppConfig
from course_catalog.services.catalog import Catalog
from course_catalog.services.roles import Role
from course_catalog.services.storage import ActorRecord


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    monkeypatch.chdir(tmp_path)

    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "database_file": "storage/catalog.db",
            "content_root": "storage/content",
            "max_hierarchy_depth": 16,
        },
        base_path=tmp_path,
    )

    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def catalog(temp_config: AppConfig) -> Catalog:
    return Catalog(temp_config)


def _register(catalog: Catalog, name: str, role: Role) -> ActorRecord:
    actor_id = catalog.repository.add_actor(name, role.value)
    actor = catalog.repository.get_actor(actor_id)
    assert actor is not None
    return actor


@pytest.fixture()
def admin(catalog: Catalog) -> ActorRecord:
    return _register(catalog, "Ada Admin", Role.ADMIN)


@pytest.fixture()
def staff(catalog: Catalog) -> ActorRecord:
    return _register(catalog, "Sam Staff", Role.STAFF)


@pytest.fixture()
def student(catalog: Catalog) -> ActorRecord:
    return _register(catalog, "Stu Dent", Role.STUDENT)
