"""
Role catalog data models.

Defines the records carried through a reconciliation run: uploaded title
rows, canonical standard roles, the mappings between them, and the typed
shape of role proposals and run results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ReviewDisposition(str, Enum):
    """Whether a mapping can be trusted without a human looking at it."""

    APPROVED = "approved"
    PENDING_REVIEW = "pending_review"


class BatchStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MatchMethod(str, Enum):
    """How a mapping's standard role was chosen."""

    PROPOSAL = "proposal"
    SIMILARITY = "similarity"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UploadedRoleRecord:
    """One uploaded title row.  Lives only for the duration of a run."""

    title: str
    department: Optional[str] = None
    level: Optional[str] = None
    source_file: str = "unknown"


@dataclass
class RawUploadFile:
    """A parsed upload file: a header row plus positional data rows."""

    file_name: str
    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "headers": list(self.headers),
            "rows": [list(r) for r in self.rows],
        }


@dataclass
class UploadSession:
    """An upload session as handed over by the upload pipeline."""

    id: str
    raw_data: list[RawUploadFile] = field(default_factory=list)
    created_by: Optional[str] = None
    status: str = "uploaded"
    analysis: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StandardRole:
    """A canonical, deduplicated job-title entity."""

    id: str
    title: str
    job_family: Optional[str] = None
    level: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role_title": self.title,
            "job_family": self.job_family,
            "role_level": self.level,
            "department": self.department,
            "standard_description": self.description,
            "is_active": self.active,
        }


@dataclass(frozen=True)
class RoleProposal:
    """A candidate standard role that has not been inserted yet."""

    title: str
    job_family: Optional[str] = None
    level: Optional[str] = None
    department: Optional[str] = None
    description: Optional[str] = None

    def to_role(self, role_id: str) -> StandardRole:
        return StandardRole(
            id=role_id,
            title=self.title,
            job_family=self.job_family,
            level=self.level,
            department=self.department,
            description=self.description,
            active=True,
        )


@dataclass(frozen=True)
class ExistingMatch:
    """A proposal source's claim that an uploaded title is an existing role."""

    uploaded_title: str
    standard_role_id: str
    confidence: float  # 0–100


@dataclass
class ProposalResult:
    """Everything a proposal source returned for one run."""

    new_roles: list[RoleProposal] = field(default_factory=list)
    existing_matches: list[ExistingMatch] = field(default_factory=list)
    used_fallback: bool = False


@dataclass
class CatalogBatch:
    """Groups the roles and mappings produced by one run."""

    id: str
    status: BatchStatus = BatchStatus.IN_PROGRESS
    source_company: Optional[str] = None
    file_name: Optional[str] = None
    total_roles: int = 0
    uploaded_by: Optional[str] = None


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass
class RoleMapping:
    """An uploaded title → standard role assertion."""

    uploaded_title: str
    uploaded_department: Optional[str]
    uploaded_level: Optional[str]
    standard_role_id: str
    confidence: int  # 0–100
    review_disposition: ReviewDisposition
    catalog_batch_id: Optional[str] = None
    standardized_title: Optional[str] = None
    standardized_department: Optional[str] = None
    standardized_level: Optional[str] = None
    job_family: Optional[str] = None
    match_method: MatchMethod = MatchMethod.SIMILARITY

    @property
    def requires_manual_review(self) -> bool:
        return self.review_disposition is ReviewDisposition.PENDING_REVIEW

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_role_title": self.uploaded_title,
            "original_department": self.uploaded_department,
            "original_level": self.uploaded_level,
            "standardized_role_title": self.standardized_title,
            "standardized_department": self.standardized_department,
            "standardized_level": self.standardized_level,
            "job_family": self.job_family,
            "standard_role_id": self.standard_role_id,
            "mapping_confidence": self.confidence,
            "mapping_status": self.review_disposition.value,
            "requires_manual_review": self.requires_manual_review,
            "match_method": self.match_method.value,
            "catalog_id": self.catalog_batch_id,
        }


@dataclass
class ReconciliationResult:
    """Aggregate result of one reconciliation run."""

    success: bool = True
    error: Optional[str] = None
    catalog_batch_id: Optional[str] = None
    records_processed: int = 0
    records_below_threshold: int = 0
    duplicates_suppressed: int = 0
    mappings_failed: int = 0
    used_fallback: bool = False
    cancelled: bool = False
    created_roles: list[StandardRole] = field(default_factory=list)
    mappings: list[RoleMapping] = field(default_factory=list)

    @property
    def standard_roles_created(self) -> int:
        return len(self.created_roles)

    @property
    def mappings_created(self) -> int:
        return len(self.mappings)

    @classmethod
    def failure(cls, error: str) -> "ReconciliationResult":
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "success": self.success,
            "standardRolesCreated": self.standard_roles_created,
            "mappingsCreated": self.mappings_created,
            "recordsProcessed": self.records_processed,
            "recordsBelowThreshold": self.records_below_threshold,
            "duplicatesSuppressed": self.duplicates_suppressed,
            "mappingsFailed": self.mappings_failed,
            "usedFallback": self.used_fallback,
            "cancelled": self.cancelled,
            "catalogBatchId": self.catalog_batch_id,
            "standardRoles": [r.to_dict() for r in self.created_roles],
            "mappings": [m.to_dict() for m in self.mappings],
        }
        if self.error is not None:
            d["error"] = self.error
        return d
