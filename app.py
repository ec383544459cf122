"""
Role Reconciler — HTTP API.

Thin Flask surface over the standardization service: upload role files
into a session, run standardisation for a session, inspect the catalog.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional

from flask import Flask, request
from werkzeug.utils import secure_filename

from role_reconciler.config import EngineConfig
from role_reconciler.engine import RoleReconciliationEngine
from role_reconciler.exceptions import SessionNotFoundError
from role_reconciler.proposal_source import LLMProposalSource, ProposalSource
from role_reconciler.repository import (
    CatalogRepository,
    InMemoryCatalogRepository,
    InMemorySessionRepository,
    SessionRepository,
)
from role_reconciler.service import StandardizationService
from role_reconciler.upload_reader import SUPPORTED_EXTENSIONS, read_upload

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# -------------------------------------------------------
# Helpers
# -------------------------------------------------------

def allowed_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in SUPPORTED_EXTENSIONS


def _default_source(config: EngineConfig) -> Optional[ProposalSource]:
    source = LLMProposalSource(config.proposal)
    if not source.is_configured:
        logger.warning("No proposal API key configured; keyword fallback only")
        return None
    return source


# -------------------------------------------------------
# App Factory
# -------------------------------------------------------

def create_app(
    config: Optional[EngineConfig] = None,
    catalog: Optional[CatalogRepository] = None,
    sessions: Optional[SessionRepository] = None,
    proposal_source: Optional[ProposalSource] = None,
    use_default_source: bool = True,
) -> Flask:
    config = config or EngineConfig(log_level=logging.WARNING)
    catalog = catalog or InMemoryCatalogRepository()
    sessions = sessions or InMemorySessionRepository()
    if proposal_source is None and use_default_source:
        proposal_source = _default_source(config)

    engine = RoleReconciliationEngine(catalog, proposal_source, config)
    service = StandardizationService(
        engine, catalog, sessions, source_company="Uploaded Organisations"
    )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024
    app.config["CATALOG"] = catalog
    app.config["SESSIONS"] = sessions

    @app.route("/api/sessions", methods=["POST"])
    def api_create_session():
        files = request.files.getlist("file")
        if not files or all(f.filename == "" for f in files):
            return {"success": False, "error": "No file uploaded"}, 400

        uploads = []
        with tempfile.TemporaryDirectory() as tmp:
            for file in files:
                if not allowed_file(file.filename):
                    return {
                        "success": False,
                        "error": f"Invalid file type: {file.filename}",
                    }, 400
                filepath = Path(tmp) / secure_filename(file.filename)
                file.save(filepath)
                try:
                    uploads.extend(read_upload(filepath))
                except ValueError as exc:
                    return {"success": False, "error": str(exc)}, 400
                except Exception as exc:
                    logger.exception("Error reading upload %s", file.filename)
                    return {
                        "success": False,
                        "error": f"Error processing file {file.filename}: {exc}",
                    }, 400

        session = sessions.create_session(uploads, created_by=request.form.get("createdBy"))
        return {
            "success": True,
            "sessionId": session.id,
            "files": [u.file_name for u in uploads],
            "rows": sum(len(u.rows) for u in uploads),
        }, 201

    @app.route("/api/standardize", methods=["POST"])
    def api_standardize():
        body = request.get_json(silent=True) or {}
        session_id = body.get("sessionId")
        if not session_id:
            return {"success": False, "error": "Session ID is required"}, 400

        try:
            result = service.run(session_id)
        except SessionNotFoundError as exc:
            return {"success": False, "error": str(exc)}, 404

        status = 200 if result.success else 500
        return result.to_dict(), status

    @app.route("/api/roles", methods=["GET"])
    def api_roles():
        roles = engine.load_catalog()
        return {"count": len(roles), "roles": [r.to_dict() for r in roles]}, 200

    @app.route("/api/health", methods=["GET"])
    def api_health():
        return {
            "status": "online",
            "version": "1.0.0",
            "api": "/api/standardize",
            "methods": ["POST"],
        }, 200

    return app


app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
