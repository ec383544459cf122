"""
Standardization Service.

Runs the engine for one upload session and does the bookkeeping around
it: opens the catalog batch, marks it completed, and merges the run summary
into the session.  Fatal run errors come back as a failure result instead
of an exception.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from role_reconciler.engine import CancellationToken, RoleReconciliationEngine
from role_reconciler.exceptions import CatalogLoadError, InputError
from role_reconciler.logging_setup import get_logger
from role_reconciler.repository import CatalogRepository, SessionRepository
from role_reconciler.schema import BatchStatus, ReconciliationResult
from role_reconciler.upload_reader import RecordExtractor

logger = get_logger("service")


class StandardizationService:
    """Session-level entry point used by the upload pipeline.

    Parameters
    ----------
    engine:
        Engine bound to ``catalog``.
    catalog:
        Same store the engine writes to; used for batch bookkeeping.
    sessions:
        Upload-session store.
    extractor:
        Raw rows → records; defaults to a ``RecordExtractor`` with default
        aliases.
    source_company:
        Recorded on every catalog batch.
    """

    def __init__(
        self,
        engine: RoleReconciliationEngine,
        catalog: CatalogRepository,
        sessions: SessionRepository,
        extractor: Optional[RecordExtractor] = None,
        source_company: Optional[str] = None,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._sessions = sessions
        self._extractor = extractor or RecordExtractor()
        self._source_company = source_company

    def run(
        self,
        session_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ReconciliationResult:
        """Standardise the roles uploaded in ``session_id``.

        Raises
        ------
        SessionNotFoundError
            Unknown session id.
        """
        session = self._sessions.get_session(session_id)
        logger.info("Processing session %s (%d file(s))", session_id, len(session.raw_data))

        records = self._extractor.extract(session.raw_data)
        if not records:
            msg = f"No role data found for session {session_id}"
            logger.error(msg)
            return ReconciliationResult.failure(msg)

        try:
            existing = self._engine.load_catalog()
        except CatalogLoadError as exc:
            logger.error("Catalog load failed for session %s: %s", session_id, exc)
            return ReconciliationResult.failure(str(exc))

        batch = self._catalog.create_catalog_batch(
            source_company=self._source_company,
            file_name=", ".join(sorted({r.source_file for r in records})),
            total_roles=len(records),
            uploaded_by=session.created_by,
        )

        try:
            result = self._engine.reconcile(
                records,
                catalog_batch_id=batch.id,
                existing_roles=existing,
                cancel_token=cancel_token,
            )
        except InputError as exc:
            logger.error("Session %s has no usable titles: %s", session_id, exc)
            return ReconciliationResult.failure(str(exc))

        if result.cancelled:
            logger.warning("Session %s cancelled; batch %s left in progress", session_id, batch.id)
            return result

        self._catalog.update_catalog_batch_status(batch.id, BatchStatus.COMPLETED)
        self._sessions.complete_session(session_id, {
            "standardization_complete": True,
            "standardRolesCreated": result.standard_roles_created,
            "roleMappingsCreated": result.mappings_created,
            "catalogBatchId": batch.id,
            "processedAt": datetime.now(timezone.utc).isoformat(),
        })
        logger.info(
            "Session %s complete — roles_created=%d, mappings=%d",
            session_id,
            result.standard_roles_created,
            result.mappings_created,
        )
        return result
