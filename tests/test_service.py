"""
Tests for the session-level StandardizationService.
"""

from __future__ import annotations

import pytest

from role_reconciler.config import EngineConfig
from role_reconciler.engine import CancellationToken, RoleReconciliationEngine
from role_reconciler.exceptions import SessionNotFoundError
from role_reconciler.repository import InMemoryCatalogRepository, InMemorySessionRepository
from role_reconciler.schema import BatchStatus, RawUploadFile, StandardRole
from role_reconciler.service import StandardizationService


class BrokenCatalogRepository(InMemoryCatalogRepository):
    def fetch_standard_roles(self, offset, limit):
        raise RuntimeError("database unavailable")


ROLES = [
    StandardRole(id="r1", title="Network Operations Engineer", job_family="Engineering",
                 level="Senior", department="Network Operations"),
]

UPLOAD = RawUploadFile(
    file_name="acme.csv",
    headers=["Role Title", "Department", "Level"],
    rows=[
        ["Network Operations Engineer", "Network Operations", "Senior"],
        ["Billing Analyst", "Finance", "Mid"],
    ],
)


def _service(catalog, sessions, **kw) -> StandardizationService:
    engine = RoleReconciliationEngine(catalog, None, EngineConfig())
    return StandardizationService(engine, catalog, sessions, source_company="Acme", **kw)


@pytest.fixture
def sessions() -> InMemorySessionRepository:
    return InMemorySessionRepository()


class TestStandardizationService:
    def test_success(self, sessions) -> None:
        catalog = InMemoryCatalogRepository(ROLES)
        session = sessions.create_session([UPLOAD], created_by="user-1")

        result = _service(catalog, sessions).run(session.id)

        assert result.success
        assert result.records_processed == 2
        assert result.mappings_created == 2

        batch = catalog.batches[result.catalog_batch_id]
        assert batch.status is BatchStatus.COMPLETED
        assert batch.source_company == "Acme"
        assert batch.file_name == "acme.csv"
        assert batch.total_roles == 2
        assert batch.uploaded_by == "user-1"

        stored = sessions.get_session(session.id)
        assert stored.status == "completed"
        assert stored.analysis["standardization_complete"] is True
        assert stored.analysis["roleMappingsCreated"] == 2
        assert stored.analysis["standardRolesCreated"] == result.standard_roles_created
        assert stored.analysis["catalogBatchId"] == batch.id
        assert "processedAt" in stored.analysis

    def test_analysis_merged(self, sessions) -> None:
        catalog = InMemoryCatalogRepository(ROLES)
        session = sessions.create_session([UPLOAD])
        session.analysis["uploadSummary"] = {"files": 1}

        _service(catalog, sessions).run(session.id)

        assert sessions.get_session(session.id).analysis["uploadSummary"] == {"files": 1}

    def test_session_without_titles(self, sessions) -> None:
        empty = RawUploadFile("notes.csv", ["Name"], [["Ann"]])
        session = sessions.create_session([empty])
        catalog = InMemoryCatalogRepository(ROLES)

        result = _service(catalog, sessions).run(session.id)

        assert not result.success
        assert result.error == f"No role data found for session {session.id}"
        assert catalog.batches == {}

    def test_unknown_session(self, sessions) -> None:
        with pytest.raises(SessionNotFoundError, match="not found"):
            _service(InMemoryCatalogRepository(), sessions).run("missing")

    def test_catalog_failure(self, sessions) -> None:
        session = sessions.create_session([UPLOAD])
        result = _service(BrokenCatalogRepository(), sessions).run(session.id)
        assert not result.success
        assert "database unavailable" in result.error
        assert sessions.get_session(session.id).status == "uploaded"

    def test_cancelled_run_leaves_batch_open(self, sessions) -> None:
        catalog = InMemoryCatalogRepository(ROLES)
        session = sessions.create_session([UPLOAD])
        token = CancellationToken()
        token.cancel()

        result = _service(catalog, sessions).run(session.id, cancel_token=token)

        assert result.cancelled
        batch = catalog.batches[result.catalog_batch_id]
        assert batch.status is BatchStatus.IN_PROGRESS
        assert sessions.get_session(session.id).status == "uploaded"
