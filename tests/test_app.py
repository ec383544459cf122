"""
Tests for the Flask HTTP surface.
"""

from __future__ import annotations

import io

import pytest

from app import create_app
from role_reconciler.repository import InMemoryCatalogRepository, InMemorySessionRepository
from role_reconciler.schema import StandardRole


CSV_BODY = b"Role Title,Department\nNetwork Operations Engineer,Network Operations\n"


@pytest.fixture
def catalog() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository([
        StandardRole(id="r1", title="Network Operations Engineer",
                     department="Network Operations", level="Senior"),
    ])


@pytest.fixture
def client(catalog):
    app = create_app(
        catalog=catalog,
        sessions=InMemorySessionRepository(),
        use_default_source=False,
    )
    app.config["TESTING"] = True
    return app.test_client()


def _upload(client, body: bytes = CSV_BODY, name: str = "roles.csv"):
    return client.post(
        "/api/sessions",
        data={"file": (io.BytesIO(body), name)},
        content_type="multipart/form-data",
    )


class TestSessions:
    def test_upload_creates_session(self, client) -> None:
        resp = _upload(client)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["success"] is True
        assert data["files"] == ["roles.csv"]
        assert data["rows"] == 1

    def test_no_file(self, client) -> None:
        resp = client.post("/api/sessions", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_invalid_type(self, client) -> None:
        resp = _upload(client, name="roles.pdf")
        assert resp.status_code == 400
        assert "Invalid file type" in resp.get_json()["error"]


    def test_corrupt_workbook(self, client) -> None:
        resp = _upload(client, body=b"not a zip", name="roles.xlsx")
        assert resp.status_code == 400
        assert resp.is_json
        data = resp.get_json()
        assert data["success"] is False


class TestStandardize:
    def test_full_flow(self, client, catalog) -> None:
        session_id = _upload(client).get_json()["sessionId"]

        resp = client.post("/api/standardize", json={"sessionId": session_id})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["mappingsCreated"] == 1
        assert data["mappings"][0]["standard_role_id"] == "r1"
        assert len(catalog.mappings) == 1

    def test_missing_session_id(self, client) -> None:
        resp = client.post("/api/standardize", json={})
        assert resp.status_code == 400

    def test_unknown_session(self, client) -> None:
        resp = client.post("/api/standardize", json={"sessionId": "nope"})
        assert resp.status_code == 404

    def test_session_without_titles(self, client) -> None:
        session_id = _upload(client, body=b"Name\nAnn\n").get_json()["sessionId"]
        resp = client.post("/api/standardize", json={"sessionId": session_id})
        assert resp.status_code == 500
        assert resp.get_json()["success"] is False


class TestCatalogRoutes:
    def test_roles(self, client) -> None:
        data = client.get("/api/roles").get_json()
        assert data["count"] == 1
        assert data["roles"][0]["role_title"] == "Network Operations Engineer"

    def test_health(self, client) -> None:
        assert client.get("/api/health").get_json()["status"] == "online"
