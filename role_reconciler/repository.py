"""
Storage interfaces.

The engine talks to two stores through narrow interfaces: the standard-role
catalog (roles, catalog batches, mappings) and the upload-session store the
upload pipeline fills.  ``InMemory*`` implementations back the Flask app
and the tests.
"""

from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from role_reconciler.exceptions import PersistenceError, SessionNotFoundError
from role_reconciler.logging_setup import get_logger
from role_reconciler.schema import (
    BatchStatus,
    CatalogBatch,
    RawUploadFile,
    RoleMapping,
    RoleProposal,
    StandardRole,
    UploadSession,
)

logger = get_logger("repository")


def _new_id() -> str:
    return str(uuid.uuid4())


class CatalogRepository(ABC):
    """Standard roles, catalog batches and role mappings."""

    @abstractmethod
    def fetch_standard_roles(self, offset: int, limit: int) -> List[StandardRole]:
        """One page of *active* standard roles in a stable order."""

    @abstractmethod
    def insert_standard_roles(self, proposals: Sequence[RoleProposal]) -> List[StandardRole]:
        """Insert new roles and return them with their assigned ids."""

    @abstractmethod
    def create_catalog_batch(
        self,
        source_company: Optional[str] = None,
        file_name: Optional[str] = None,
        total_roles: int = 0,
        uploaded_by: Optional[str] = None,
    ) -> CatalogBatch:
        """Open a batch in ``in_progress`` state."""

    @abstractmethod
    def update_catalog_batch_status(self, batch_id: str, status: BatchStatus) -> None:
        ...

    @abstractmethod
    def insert_role_mappings(self, mappings: Sequence[RoleMapping]) -> None:
        """Insert one chunk of mappings atomically; raise ``PersistenceError``."""


class SessionRepository(ABC):
    """Upload sessions produced by the upload pipeline."""

    @abstractmethod
    def create_session(
        self, raw_data: Sequence[RawUploadFile], created_by: Optional[str] = None
    ) -> UploadSession:
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> UploadSession:
        """Raise ``SessionNotFoundError`` for unknown ids."""

    @abstractmethod
    def complete_session(self, session_id: str, analysis: Dict[str, Any]) -> None:
        """Mark completed and merge ``analysis`` into the stored analysis."""


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

class InMemoryCatalogRepository(CatalogRepository):
    """Process-local catalog store."""

    def __init__(self, roles: Optional[Sequence[StandardRole]] = None) -> None:
        self.roles: List[StandardRole] = list(roles or [])
        self.batches: Dict[str, CatalogBatch] = {}
        self.mappings: List[RoleMapping] = []

    def fetch_standard_roles(self, offset: int, limit: int) -> List[StandardRole]:
        active = [r for r in self.roles if r.active]
        return active[offset:offset + limit]

    def insert_standard_roles(self, proposals: Sequence[RoleProposal]) -> List[StandardRole]:
        created = [p.to_role(_new_id()) for p in proposals]
        self.roles.extend(created)
        logger.info("Inserted %d standard role(s)", len(created))
        return created

    def create_catalog_batch(
        self,
        source_company: Optional[str] = None,
        file_name: Optional[str] = None,
        total_roles: int = 0,
        uploaded_by: Optional[str] = None,
    ) -> CatalogBatch:
        batch = CatalogBatch(
            id=_new_id(),
            status=BatchStatus.IN_PROGRESS,
            source_company=source_company,
            file_name=file_name,
            total_roles=total_roles,
            uploaded_by=uploaded_by,
        )
        self.batches[batch.id] = batch
        return batch

    def update_catalog_batch_status(self, batch_id: str, status: BatchStatus) -> None:
        try:
            self.batches[batch_id].status = status
        except KeyError as exc:
            raise PersistenceError(f"Unknown catalog batch {batch_id!r}") from exc

    def insert_role_mappings(self, mappings: Sequence[RoleMapping]) -> None:
        self.mappings.extend(mappings)


class InMemorySessionRepository(SessionRepository):
    """Process-local upload-session store."""

    def __init__(self) -> None:
        self.sessions: Dict[str, UploadSession] = {}

    def create_session(
        self, raw_data: Sequence[RawUploadFile], created_by: Optional[str] = None
    ) -> UploadSession:
        session = UploadSession(id=_new_id(), raw_data=list(raw_data), created_by=created_by)
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> UploadSession:
        try:
            return self.sessions[session_id]
        except KeyError as exc:
            raise SessionNotFoundError(f"Session {session_id} not found") from exc

    def complete_session(self, session_id: str, analysis: Dict[str, Any]) -> None:
        session = self.get_session(session_id)
        merged = copy.deepcopy(session.analysis)
        merged.update(analysis)
        session.analysis = merged
        session.status = "completed"
