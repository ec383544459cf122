"""
Mapping Builder.

Assigns every uploaded record its best standard role and triages the
result by confidence:

* score <  ``creation_threshold``  → no mapping, record reported as skipped
* score >= ``approval_threshold``  → ``approved``
* otherwise                        → ``pending_review``

A direct match asserted by the proposal source takes precedence over the
similarity scan when its role exists in the catalog.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from role_reconciler.config import MatchingConfig
from role_reconciler.logging_setup import get_logger
from role_reconciler.schema import (
    ExistingMatch,
    MatchMethod,
    ReviewDisposition,
    RoleMapping,
    StandardRole,
    UploadedRoleRecord,
)

logger = get_logger("mapping_builder")


class Scorer(Protocol):
    def similarity(self, title_a: str, title_b: str) -> float: ...


@dataclass
class MappingBuildResult:
    mappings: List[RoleMapping] = field(default_factory=list)
    # (record, best score) for records that stayed below the creation bar
    skipped: List[Tuple[UploadedRoleRecord, float]] = field(default_factory=list)
    empty_titles: int = 0


def to_confidence(score: float) -> int:
    """Scale a 0–1 score to a 0–100 integer, rounding halves up."""
    return int(math.floor(score * 100 + 0.5))


def chunked(items: Sequence, size: int) -> Iterator[Sequence]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class MappingBuilder:
    """Build ``RoleMapping`` records for a batch of uploaded titles.

    Parameters
    ----------
    scorer:
        Anything exposing ``similarity(title_a, title_b) -> float``.
    config:
        Creation and approval thresholds.
    """

    def __init__(self, scorer: Scorer, config: Optional[MatchingConfig] = None) -> None:
        self._scorer = scorer
        self._config = config or MatchingConfig()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def best_match(
        self, title: str, catalog: Iterable[StandardRole]
    ) -> Tuple[Optional[StandardRole], float]:
        """Return the highest-scoring catalog role for ``title``.

        Ties keep the earlier role.
        """
        best_role: Optional[StandardRole] = None
        best_score = 0.0
        for role in catalog:
            score = self._scorer.similarity(title, role.title)
            if score > best_score:
                best_score = score
                best_role = role
        return best_role, best_score

    def disposition(self, score: float) -> Optional[ReviewDisposition]:
        """Triage a score; ``None`` means no mapping is created."""
        if score < self._config.creation_threshold:
            return None
        if score >= self._config.approval_threshold:
            return ReviewDisposition.APPROVED
        return ReviewDisposition.PENDING_REVIEW

    def build(
        self,
        records: Iterable[UploadedRoleRecord],
        catalog: Sequence[StandardRole],
        existing_matches: Iterable[ExistingMatch] = (),
        catalog_batch_id: Optional[str] = None,
    ) -> MappingBuildResult:
        """Map every record with a non-empty title against ``catalog``."""
        result = MappingBuildResult()
        roles_by_id: Dict[str, StandardRole] = {r.id: r for r in catalog}

        asserted: Dict[str, ExistingMatch] = {}
        for m in existing_matches:
            asserted.setdefault(m.uploaded_title.strip().lower(), m)

        for record in records:
            if not record.title or not record.title.strip():
                result.empty_titles += 1
                continue

            role, score, method = self._resolve(
                record, catalog, roles_by_id, asserted
            )

            disposition = self.disposition(score) if role is not None else None
            if disposition is None:
                logger.warning(
                    "Skipping low-confidence mapping for %r (confidence: %d%%)",
                    record.title,
                    to_confidence(score),
                )
                result.skipped.append((record, score))
                continue

            mapping = RoleMapping(
                uploaded_title=record.title,
                uploaded_department=record.department,
                uploaded_level=record.level,
                standard_role_id=role.id,
                confidence=to_confidence(score),
                review_disposition=disposition,
                catalog_batch_id=catalog_batch_id,
                standardized_title=role.title,
                standardized_department=role.department,
                standardized_level=role.level,
                job_family=role.job_family,
                match_method=method,
            )
            logger.info(
                "MAPPED: %r → %r [%s] confidence=%d status=%s",
                record.title,
                role.title,
                method.value,
                mapping.confidence,
                disposition.value,
            )
            result.mappings.append(mapping)

        logger.info(
            "Mapping complete — mapped=%d, skipped=%d, empty=%d",
            len(result.mappings),
            len(result.skipped),
            result.empty_titles,
        )
        return result

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _resolve(
        self,
        record: UploadedRoleRecord,
        catalog: Sequence[StandardRole],
        roles_by_id: Dict[str, StandardRole],
        asserted: Dict[str, ExistingMatch],
    ) -> Tuple[Optional[StandardRole], float, MatchMethod]:
        match = asserted.get(record.title.strip().lower())
        if match is not None:
            role = roles_by_id.get(match.standard_role_id)
            if role is not None:
                score = min(max(match.confidence, 0.0), 100.0) / 100
                return role, score, MatchMethod.PROPOSAL
            logger.warning(
                "Proposed match for %r points at unknown role %r; "
                "falling back to similarity",
                record.title,
                match.standard_role_id,
            )

        role, score = self.best_match(record.title, catalog)
        return role, score, MatchMethod.SIMILARITY
