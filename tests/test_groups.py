from __future__ import annotations

import pytest

from course_catalog.services.catalog import Catalog
from course_catalog.services.errors import ValidationError


def test_get_or_create_is_idempotent(catalog: Catalog) -> None:
    first = catalog.groups.get_or_create("Studio A")
    second = catalog.groups.get_or_create("Studio A")

    assert first.id == second.id
    assert [group.name for group in catalog.repository.iter_groups()] == ["Studio A"]


def test_get_or_create_returns_existing_group_unchanged(catalog: Catalog, staff) -> None:
    catalog.groups.upsert({"name": "Studio B", "leader_id": staff.id})

    group = catalog.groups.get_or_create("Studio B")

    assert group.leader_id == staff.id


@pytest.mark.parametrize("name", ["", "   "])
def test_get_or_create_rejects_blank_names(catalog: Catalog, name: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        catalog.groups.get_or_create(name)

    assert excinfo.value.errors[0]["field"] == "name"
    assert list(catalog.repository.iter_groups()) == []


def test_upsert_overwrites_existing_fields(catalog: Catalog, staff, admin) -> None:
    created = catalog.groups.upsert({"name": "A", "leader_id": staff.id})
    updated = catalog.groups.upsert({"name": "A", "leader_id": admin.id})

    assert created.id == updated.id
    assert updated.leader_id == admin.id
    groups = list(catalog.repository.iter_groups())
    assert len(groups) == 1
    assert groups[0].leader_id == admin.id


def test_upsert_keeps_omitted_fields(catalog: Catalog, staff, admin) -> None:
    catalog.groups.upsert({"name": "A", "leader_id": staff.id, "mentor_id": admin.id})

    updated = catalog.groups.upsert({"name": "A", "leader_id": admin.id})

    assert updated.mentor_id == admin.id


def test_upsert_rejects_invalid_attributes(catalog: Catalog) -> None:
    with pytest.raises(ValidationError) as excinfo:
        catalog.groups.upsert({"name": "A", "leader_id": "nobody"})

    assert any(item["field"] == "leader_id" for item in excinfo.value.errors)
    assert catalog.repository.find_group_by_name("A") is None


def test_upsert_requires_name(catalog: Catalog) -> None:
    with pytest.raises(ValidationError):
        catalog.groups.upsert({"leader_id": 1})


@pytest.mark.parametrize("field", ["leader_id", "mentor_id"])
def test_upsert_rejects_unknown_actor(catalog: Catalog, staff, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        catalog.groups.upsert({"name": "G", field: 999})

    assert excinfo.value.errors == [{"field": field, "message": "unknown actor 999"}]
    assert catalog.repository.find_group_by_name("G") is None


def test_upsert_rejects_unknown_actor_on_update(catalog: Catalog, staff) -> None:
    catalog.groups.upsert({"name": "G", "leader_id": staff.id})

    with pytest.raises(ValidationError):
        catalog.groups.upsert({"name": "G", "leader_id": 999})

    assert catalog.repository.find_group_by_name("G").leader_id == staff.id


def test_get_or_create_converges_when_insert_races(catalog: Catalog, monkeypatch) -> None:
    repository = catalog.repository
    existing_id = repository.add_group("Race")
    real_find = repository.find_group_by_name
    calls = []

    def find_missing_once(name):
        calls.append(name)
        return None if len(calls) == 1 else real_find(name)

    monkeypatch.setattr(repository, "find_group_by_name", find_missing_once)

    group = catalog.groups.get_or_create("Race")

    assert group.id == existing_id
    assert len(list(repository.iter_groups())) == 1
