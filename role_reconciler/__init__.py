"""
Role Reconciler — Standard Role Catalog Reconciliation Engine.

Reads free-text job titles uploaded by several source organisations and
reconciles them against a catalog of canonical standard roles.

Every mapping carries a confidence score and a review disposition.  Titles
that match nothing well enough are never mapped silently. They are
dropped and reported, and new standard roles are only created after
duplicate checks.
"""

__version__ = "1.0.0"
__author__ = "Role Reconciler Team"

from role_reconciler.engine import RoleReconciliationEngine  # noqa: F401
from role_reconciler.service import StandardizationService  # noqa: F401
