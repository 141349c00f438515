from __future__ import annotations

import sqlite3

import pytest

from course_catalog.services.catalog import Catalog
from course_catalog.services.errors import CycleDetected, Forbidden, NotFound, ValidationError
from course_catalog.services.storage import CategoryRecord, MaterialRecord
from course_catalog.services.uploads import UploadedFile


def _nested(catalog: Catalog, actor, depth: int = 3):
    parent = None
    created = []
    for level in range(1, depth + 1):
        folder = catalog.folders.create_folder(actor, {"name": f"C{level}"}, parent)
        created.append(folder)
        parent = folder.id
    return created


def test_create_folder_records_uploader(catalog: Catalog, staff) -> None:
    folder = catalog.folders.create_folder(staff, {"name": "Lectures", "description": "Slides"})

    assert folder.name == "Lectures"
    assert folder.description == "Slides"
    assert folder.category_id is None
    assert folder.uploader_id == staff.id


def test_create_folder_under_missing_parent(catalog: Catalog, staff) -> None:
    with pytest.raises(NotFound):
        catalog.folders.create_folder(staff, {"name": "Orphan"}, 77)

    assert catalog.folders.list_folder(None) == []


def test_create_folder_requires_name(catalog: Catalog, staff) -> None:
    with pytest.raises(ValidationError):
        catalog.folders.create_folder(staff, {"description": "nameless"})


def test_student_cannot_create_or_delete_folders(catalog: Catalog, staff, student) -> None:
    folder = catalog.folders.create_folder(staff, {"name": "Kept"})

    with pytest.raises(Forbidden) as excinfo:
        catalog.folders.create_folder(student, {"name": "Mine"})
    assert excinfo.value.reason == "User is not permitted to create folders"

    with pytest.raises(Forbidden):
        catalog.folders.delete_folder(student, folder.id)

    assert [entry.id for entry in catalog.folders.list_folder(None)] == [folder.id]


def test_ancestor_chain_runs_from_root(catalog: Catalog, admin) -> None:
    c1, c2, c3 = _nested(catalog, admin)

    chain = catalog.folders.ancestor_chain(c3.id)

    assert [record.id for record in chain] == [c1.id, c2.id, c3.id]
    assert catalog.folders.ancestor_chain(c1.id)[0].id == c1.id


def test_ancestor_chain_of_root_is_empty(catalog: Catalog) -> None:
    assert catalog.folders.ancestor_chain(None) == []


def test_ancestor_chain_of_missing_folder(catalog: Catalog) -> None:
    with pytest.raises(NotFound):
        catalog.folders.ancestor_chain(5)


def test_ancestor_chain_detects_cycles(catalog: Catalog, admin) -> None:
    c1, c2 = _nested(catalog, admin, depth=2)
    connection = sqlite3.connect(catalog.config.database_file)
    try:
        connection.execute("UPDATE categories SET category_id = ? WHERE id = ?", (c2.id, c1.id))
        connection.commit()
    finally:
        connection.close()

    with pytest.raises(CycleDetected) as excinfo:
        catalog.folders.ancestor_chain(c2.id)

    assert excinfo.value.category_id == c2.id


def test_ancestor_chain_stops_at_depth_bound(catalog: Catalog, admin) -> None:
    depth = catalog.config.max_hierarchy_depth
    folders = _nested(catalog, admin, depth=depth + 1)

    assert len(catalog.folders.ancestor_chain(folders[depth - 1].id)) == depth
    with pytest.raises(CycleDetected):
        catalog.folders.ancestor_chain(folders[-1].id)


def test_list_folder_puts_materials_before_subfolders(catalog: Catalog, staff) -> None:
    parent = catalog.folders.create_folder(staff, {"name": "Parent"})
    first_child = catalog.folders.create_folder(staff, {"name": "Child A"}, parent.id)
    second_child = catalog.folders.create_folder(staff, {"name": "Child B"}, parent.id)
    material = catalog.uploads.upload_material(
        staff,
        {"title": "Handout"},
        parent.id,
        blob=UploadedFile(filename="handout.pdf", data=b"pdf"),
    )

    entries = catalog.folders.list_folder(parent.id)

    assert [type(entry) for entry in entries] == [MaterialRecord, CategoryRecord, CategoryRecord]
    assert [entry.id for entry in entries] == [material.id, first_child.id, second_child.id]
    assert entries[0].uploader is not None and entries[0].uploader.name == staff.name


def test_list_folder_root_excludes_nested_entries(catalog: Catalog, staff) -> None:
    top = catalog.folders.create_folder(staff, {"name": "Top"})
    catalog.folders.create_folder(staff, {"name": "Nested"}, top.id)
    root_material = catalog.uploads.upload_material(
        staff, {"title": "Syllabus"}, blob=UploadedFile(filename="s.pdf", data=b"x")
    )

    entries = catalog.folders.list_folder(None)

    assert [entry.id for entry in entries] == [root_material.id, top.id]


def test_list_folder_of_unknown_folder(catalog: Catalog) -> None:
    with pytest.raises(NotFound) as excinfo:
        catalog.folders.list_folder(404)

    assert str(excinfo.value) == "Category 404 not found"


def test_delete_folder_cascades(catalog: Catalog, admin, caplog) -> None:
    c1, c2 = _nested(catalog, admin, depth=2)
    material = catalog.uploads.upload_material(
        admin,
        {"title": "Deep"},
        c2.id,
        blob=UploadedFile(filename="deep.pdf", data=b"deep"),
    )

    with caplog.at_level("WARNING", logger="course_catalog.services.folders"):
        deleted = catalog.folders.delete_folder(admin, c1.id)

    assert deleted.id == c1.id
    assert catalog.repository.get_category(c1.id) is None
    assert catalog.repository.get_category(c2.id) is None
    assert catalog.repository.get_material(material.id) is None
    assert "1 material file(s)" in caplog.text


def test_delete_missing_folder(catalog: Catalog, admin) -> None:
    with pytest.raises(NotFound):
        catalog.folders.delete_folder(admin, 12)
