from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from course_catalog.services.catalog import Catalog
from course_catalog.web import create_app
from course_catalog.web.server import REQUEST_ID_HEADER


def _client(catalog: Catalog) -> TestClient:
    return TestClient(create_app(catalog))


def _as(actor) -> dict:
    return {"X-Actor-Id": str(actor.id)}


def test_root_listing_starts_empty(catalog: Catalog) -> None:
    client = _client(catalog)

    response = client.get("/api/folders")

    assert response.status_code == 200
    assert response.json() == {"id": None, "entries": [], "hierarchy": []}
    assert response.headers.get(REQUEST_ID_HEADER)


def test_folder_lifecycle(catalog: Catalog, staff) -> None:
    client = _client(catalog)

    created = client.post("/api/folders", json={"name": "Lectures"}, headers=_as(staff))
    assert created.status_code == 201
    parent = created.json()["folder"]
    assert parent["uploader_id"] == staff.id

    child = client.post(
        "/api/folders",
        json={"name": "Week 1", "category_id": parent["id"]},
        headers=_as(staff),
    ).json()["folder"]

    listing = client.get(f"/api/folders/{child['id']}").json()
    assert [item["name"] for item in listing["hierarchy"]] == ["Lectures", "Week 1"]
    assert listing["entries"] == []

    parent_listing = client.get(f"/api/folders/{parent['id']}").json()
    assert [(entry["type"], entry["id"]) for entry in parent_listing["entries"]] == [
        ("folder", child["id"])
    ]

    deleted = client.delete(f"/api/folders/{parent['id']}", headers=_as(staff))
    assert deleted.status_code == 204
    assert client.get(f"/api/folders/{child['id']}").status_code == 404


def test_mutations_require_known_actor(catalog: Catalog) -> None:
    client = _client(catalog)

    missing = client.post("/api/folders", json={"name": "Anonymous"})
    unknown = client.post("/api/folders", json={"name": "Ghost"}, headers={"X-Actor-Id": "999"})

    assert missing.status_code == 401
    assert unknown.status_code == 401


def test_student_is_forbidden(catalog: Catalog, student) -> None:
    client = _client(catalog)

    response = client.post("/api/folders", json={"name": "Mine"}, headers=_as(student))

    assert response.status_code == 403
    assert response.json() == {
        "detail": "User is not permitted to create folders",
        "error": "forbidden",
    }


def test_material_upload_listing_and_download(catalog: Catalog, staff) -> None:
    client = _client(catalog)
    folder = client.post("/api/folders", json={"name": "Slides"}, headers=_as(staff)).json()["folder"]

    response = client.post(
        "/api/materials",
        data={"title": "Week 1", "description": "Intro", "category_id": str(folder["id"])},
        files={"file": ("week1.pdf", b"%PDF-1.4", "application/pdf")},
        headers=_as(staff),
    )

    assert response.status_code == 201
    material = response.json()["material"]
    assert material["category_id"] == folder["id"]
    assert material["uploader"]["name"] == staff.name

    listing = client.get(f"/api/folders/{folder['id']}").json()
    assert [entry["type"] for entry in listing["entries"]] == ["material"]

    download = client.get(f"/content/{material['file']}")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4"

    deleted = client.delete(f"/api/materials/{material['id']}", headers=_as(staff))
    assert deleted.status_code == 204
    assert client.get(f"/content/{material['file']}").status_code == 404
    assert client.delete(f"/api/materials/{material['id']}", headers=_as(staff)).status_code == 404


def test_material_upload_into_missing_folder(catalog: Catalog, staff) -> None:
    client = _client(catalog)

    response = client.post(
        "/api/materials",
        data={"title": "Lost", "category_id": "41"},
        files={"file": ("lost.pdf", b"x", "application/pdf")},
        headers=_as(staff),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_sourcecast_endpoints(catalog: Catalog, admin, student) -> None:
    client = _client(catalog)

    forbidden = client.post(
        "/api/sourcecasts",
        data={"title": "Lecture 1"},
        files={"audio": ("l1.mp3", b"ID3", "audio/mpeg")},
        headers=_as(student),
    )
    assert forbidden.status_code == 403

    created = client.post(
        "/api/sourcecasts",
        data={"title": "Lecture 1"},
        files={"audio": ("l1.mp3", b"ID3", "audio/mpeg")},
        headers=_as(admin),
    )
    assert created.status_code == 201
    sourcecast = created.json()["sourcecast"]

    listed = client.get("/api/sourcecasts").json()["sourcecasts"]
    assert [item["id"] for item in listed] == [sourcecast["id"]]

    assert client.delete(f"/api/sourcecasts/{sourcecast['id']}", headers=_as(admin)).status_code == 204
    assert client.get("/api/sourcecasts").json() == {"sourcecasts": []}


def test_group_endpoints(catalog: Catalog, staff, admin) -> None:
    client = _client(catalog)

    first = client.post("/api/groups", json={"name": "Studio 1"}).json()["group"]
    again = client.post("/api/groups", json={"name": "Studio 1"}).json()["group"]
    assert first["id"] == again["id"]

    client.put("/api/groups", json={"name": "Studio 1", "leader_id": staff.id})
    updated = client.put("/api/groups", json={"name": "Studio 1", "mentor_id": admin.id}).json()["group"]
    assert updated == {
        "id": first["id"],
        "name": "Studio 1",
        "leader_id": staff.id,
        "mentor_id": admin.id,
    }


def test_blank_group_name_reports_fields(catalog: Catalog) -> None:
    client = _client(catalog)

    response = client.post("/api/groups", json={"name": "  "})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["fields"][0]["field"] == "name"


def test_unknown_folder_is_not_found(catalog: Catalog) -> None:
    client = _client(catalog)

    response = client.get("/api/folders/99")

    assert response.status_code == 404
    assert response.json()["detail"] == "Category 99 not found"


def test_content_route_rejects_escaping_paths(catalog: Catalog) -> None:
    client = _client(catalog)

    assert client.get("/content/..%2Fcatalog.db").status_code == 404


def test_group_with_unknown_leader_is_rejected(catalog: Catalog) -> None:
    client = _client(catalog)

    response = client.put("/api/groups", json={"name": "Studio 9", "leader_id": 999})

    assert response.status_code == 422
    assert response.json()["fields"] == [{"field": "leader_id", "message": "unknown actor 999"}]
