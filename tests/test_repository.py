from __future__ import annotations

import sqlite3

import pytest

from course_catalog.config import AppConfig
from course_catalog.services.errors import StoreFailure
from course_catalog.services.storage import CatalogRepository


def test_repository_crud_cycle(temp_config: AppConfig) -> None:
    repository = CatalogRepository(temp_config)

    actor_id = repository.add_actor("Grace", "staff")
    category_id = repository.add_category("Lectures", "Weekly slides", uploader_id=actor_id)
    material_id = repository.add_material(
        "Week 1",
        "materials/week1.pdf",
        category_id=category_id,
        uploader_id=actor_id,
    )

    material = repository.get_material(material_id)
    assert material is not None
    assert material.file == "materials/week1.pdf"
    assert material.category_id == category_id
    assert material.uploader is not None and material.uploader.name == "Grace"

    assert repository.remove_material(material_id) == 1
    assert repository.get_material(material_id) is None
    assert repository.remove_material(material_id) == 0

    repository.remove_category(category_id)
    assert repository.get_category(category_id) is None


def test_root_listing_uses_null_parent(temp_config: AppConfig) -> None:
    repository = CatalogRepository(temp_config)

    root_folder = repository.add_category("Root folder")
    repository.add_category("Nested", category_id=root_folder)
    root_material = repository.add_material("Syllabus", "materials/syllabus.pdf")
    repository.add_material("Nested file", "materials/nested.pdf", category_id=root_folder)

    assert [record.id for record in repository.list_categories(None)] == [root_folder]
    assert [record.id for record in repository.list_materials(None)] == [root_material]
    assert [record.name for record in repository.list_categories(root_folder)] == ["Nested"]


def test_category_delete_cascades_to_subtree(temp_config: AppConfig) -> None:
    repository = CatalogRepository(temp_config)

    top = repository.add_category("Top")
    middle = repository.add_category("Middle", category_id=top)
    leaf_material = repository.add_material("Deep", "materials/deep.pdf", category_id=middle)

    assert repository.count_subtree_materials(top) == 1
    assert repository.delete_category_cascades_to == ("categories", "materials")

    repository.remove_category(top)

    assert repository.get_category(middle) is None
    assert repository.get_material(leaf_material) is None


def test_group_lookup_and_partial_update(temp_config: AppConfig) -> None:
    repository = CatalogRepository(temp_config)
    leader = repository.add_actor("Leader", "staff")

    group_id = repository.add_group("Studio 1", leader_id=leader)
    repository.update_group(group_id, mentor_id=leader)

    group = repository.find_group_by_name("Studio 1")
    assert group is not None
    assert group.id == group_id
    assert group.leader_id == leader
    assert group.mentor_id == leader
    assert repository.find_group_by_name("Studio 2") is None


def test_duplicate_group_name_surfaces_store_failure(temp_config: AppConfig) -> None:
    repository = CatalogRepository(temp_config)
    repository.add_group("Studio 1")

    with pytest.raises(StoreFailure) as excinfo:
        repository.add_group("Studio 1")

    assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)


def test_event_emitter_receives_db_actions(temp_config: AppConfig) -> None:
    events = []

    def emitter(action, **kwargs):
        events.append((action, kwargs))

    repository = CatalogRepository(temp_config, event_emitter=emitter)
    repository.add_category("Tracked")

    actions = [action for action, _ in events]
    assert "categories.insert" in actions
    assert "add_category" in actions
    payload = dict(events)["add_category"]["payload"]
    assert payload["status"] == "ok"
    assert payload["category_id"] >= 1
