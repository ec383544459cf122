"""
Duplicate Suppression Layer.

Guards the catalog against near-duplicate standard roles.  A proposed role
is checked against every known role (pre-existing plus anything already
accepted in this run) before it may be inserted:

* **exact** — title, department and level equal, case-insensitively
* **semantic** — title similarity ≥ ``duplicate_threshold`` *and* the same
  department

Only proposals that survive both checks are returned for insertion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from role_reconciler.config import MatchingConfig
from role_reconciler.logging_setup import get_logger
from role_reconciler.normalizer import TitleNormalizer
from role_reconciler.schema import RoleProposal, StandardRole
from role_reconciler.similarity import SimilarityScorer

logger = get_logger("deduplicator")

# Anything with title / department / level attributes can be compared
RoleLike = Union[StandardRole, RoleProposal]


@dataclass
class DuplicateCheck:
    """Outcome of checking one proposal against the catalog."""

    is_duplicate: bool
    kind: Optional[str] = None  # "exact" | "semantic"
    existing: Optional[RoleLike] = None
    score: float = 0.0


@dataclass
class DedupResult:
    """Outcome of filtering a list of proposals."""

    accepted: List[RoleProposal] = field(default_factory=list)
    duplicates: List[DuplicateCheck] = field(default_factory=list)

    @property
    def matched_existing(self) -> List[StandardRole]:
        """Catalog roles that absorbed a duplicate proposal."""
        return [
            d.existing for d in self.duplicates
            if isinstance(d.existing, StandardRole)
        ]


class Deduplicator:
    """Decide whether proposed roles already exist in the catalog.

    Parameters
    ----------
    scorer:
        Title similarity used for the semantic check.
    config:
        Supplies ``duplicate_threshold``.
    """

    def __init__(
        self,
        scorer: SimilarityScorer,
        config: Optional[MatchingConfig] = None,
    ) -> None:
        self._scorer = scorer
        self._config = config or MatchingConfig()
        self._fold = TitleNormalizer.casefold_field

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def find_duplicate(
        self, proposal: RoleLike, catalog: Iterable[RoleLike]
    ) -> DuplicateCheck:
        """Check one proposal.  Exact duplicates win over semantic ones."""
        catalog = list(catalog)

        for existing in catalog:
            if (
                self._fold(existing.title) == self._fold(proposal.title)
                and self._fold(existing.department) == self._fold(proposal.department)
                and self._fold(existing.level) == self._fold(proposal.level)
            ):
                logger.warning(
                    "Skipping duplicate role: %r (exact match of existing %r)",
                    proposal.title,
                    existing.title,
                )
                return DuplicateCheck(True, "exact", existing, 1.0)

        for existing in catalog:
            if self._fold(existing.department) != self._fold(proposal.department):
                continue
            score = self._scorer.similarity(proposal.title, existing.title)
            if score >= self._config.duplicate_threshold:
                logger.warning(
                    "Skipping semantic duplicate: %r (similar to %r, score=%.2f)",
                    proposal.title,
                    existing.title,
                    score,
                )
                return DuplicateCheck(True, "semantic", existing, score)

        return DuplicateCheck(False)

    def filter(
        self,
        proposals: Iterable[RoleProposal],
        catalog: Iterable[StandardRole],
    ) -> DedupResult:
        """Split proposals into ones to insert and duplicates.

        Accepted proposals join the comparison pool, so two near-identical
        proposals in the same batch yield a single role.
        """
        pool: List[RoleLike] = list(catalog)
        result = DedupResult()

        for proposal in proposals:
            check = self.find_duplicate(proposal, pool)
            if check.is_duplicate:
                result.duplicates.append(check)
                continue
            result.accepted.append(proposal)
            pool.append(proposal)

        logger.info(
            "Deduplication — accepted=%d, duplicates=%d",
            len(result.accepted),
            len(result.duplicates),
        )
        return result
