#!/usr/bin/env python3
"""
Example: Role Reconciliation Demo.

Reconciles a few uploaded title lists against an in-memory catalog and
prints the run summaries.  No API key is needed; without one the keyword
fallback proposes the new roles.

Run from the project root:
    python -m role_reconciler.examples.run_example
or:
    python role_reconciler/examples/run_example.py
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the project root is on sys.path when run as a script
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from role_reconciler.config import EngineConfig
from role_reconciler.engine import RoleReconciliationEngine
from role_reconciler.repository import InMemoryCatalogRepository, InMemorySessionRepository
from role_reconciler.schema import StandardRole, UploadedRoleRecord
from role_reconciler.service import StandardizationService
from role_reconciler.upload_reader import read_csv


# ======================================================================
# Helper
# ======================================================================

def print_section(title: str) -> None:
    width = 72
    print("\n" + "=" * width)
    print(f"  {title}")
    print("=" * width)


def print_result(result) -> None:  # noqa: ANN001
    summary = result.to_dict()
    mappings = summary.pop("mappings")
    summary.pop("standardRoles")
    print(json.dumps(summary, indent=2))
    for m in mappings:
        flag = "review" if m["requires_manual_review"] else "ok"
        print(
            f"  {m['original_role_title']:<36} → {m['standardized_role_title']:<32}"
            f" {m['mapping_confidence']:>3}  [{flag}]"
        )


# ======================================================================
# Demo 1: empty catalog
# ======================================================================

def demo_empty_catalog(config: EngineConfig) -> None:
    print_section("DEMO 1 — Empty catalog, fallback proposals")

    engine = RoleReconciliationEngine(InMemoryCatalogRepository(), config=config)
    records = [
        UploadedRoleRecord("Network Engineer", "Network Operations"),
        UploadedRoleRecord("Sr. Network Engineer", "Network Operations", "Senior"),
        UploadedRoleRecord("NOC Specialist", "NOC"),
    ]
    print_result(engine.reconcile(records))


# ======================================================================
# Demo 2: session upload against a telecom catalog
# ======================================================================

TELECOM_CATALOG = [
    StandardRole("t1", "Network Operations Engineer", "Engineering", "Senior", "Network Operations"),
    StandardRole("t2", "RF Planning Engineer", "Engineering", "Mid", "Radio Access"),
    StandardRole("t3", "Billing Analyst", "Finance", "Mid", "Billing"),
]

UPLOAD_CSV = """Job Title,Division,Seniority
Network Operations Engineer,Network Operations,Senior
RF Planning Eng,Radio Access,Mid
Billing Analyst,Billing,Junior
Completely Unrelated Widget Title,Warehouse,
"""


def demo_session(config: EngineConfig) -> None:
    print_section("DEMO 2 — Upload session against a telecom catalog")

    catalog = InMemoryCatalogRepository(TELECOM_CATALOG)
    sessions = InMemorySessionRepository()
    engine = RoleReconciliationEngine(catalog, config=config)
    service = StandardizationService(engine, catalog, sessions, source_company="Acme Telecom")

    session = sessions.create_session([read_csv(UPLOAD_CSV, file_name="acme.csv")])
    print_result(service.run(session.id))
    print(f"\n  Catalog size after run: {len(catalog.roles)}")


# ======================================================================
# Main
# ======================================================================

def main() -> None:
    config = EngineConfig(log_level=logging.WARNING)
    demo_empty_catalog(config)
    demo_session(config)


if __name__ == "__main__":
    main()
