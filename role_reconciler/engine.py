"""
Role Reconciliation Engine.

The central entry point that wires together every layer for one run:

    Records  →  Catalog load  →  Unmatched detection
             →  Proposal source (or keyword fallback)  →  Deduplicator
             →  Role insert  →  Mapping Builder  →  Chunked mapping insert

Usage
-----
>>> from role_reconciler.engine import RoleReconciliationEngine
>>> from role_reconciler.repository import InMemoryCatalogRepository
>>>
>>> engine = RoleReconciliationEngine(InMemoryCatalogRepository())
>>> result = engine.reconcile(records)
>>> print(result.to_dict())
"""

from __future__ import annotations

import random
import threading
from typing import List, Optional, Sequence

from role_reconciler.config import EngineConfig
from role_reconciler.deduplicator import Deduplicator
from role_reconciler.exceptions import (
    CatalogLoadError,
    InputError,
    PersistenceError,
    ProposalSourceError,
)
from role_reconciler.logging_setup import configure_logging, get_logger
from role_reconciler.mapping_builder import MappingBuilder, chunked
from role_reconciler.normalizer import TitleNormalizer
from role_reconciler.proposal_source import (
    FallbackProposer,
    ProposalSource,
    build_sample,
    summarize_catalog,
)
from role_reconciler.repository import CatalogRepository
from role_reconciler.schema import (
    ProposalResult,
    ReconciliationResult,
    StandardRole,
    UploadedRoleRecord,
)
from role_reconciler.similarity import SimilarityCache, SimilarityScorer
from role_reconciler.synonym_expander import SynonymExpander

logger = get_logger("engine")


class CancellationToken:
    """Cooperative cancellation flag checked between run stages and chunks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RoleReconciliationEngine:
    """Reconciles uploaded role titles against the standard-role catalog.

    One engine owns one synonym table and one similarity cache.  Runs
    against the same catalog must not overlap; callers serialise them.

    Parameters
    ----------
    catalog:
        Store for standard roles and mappings.
    proposal_source:
        Where new roles come from.  ``None`` uses the keyword fallback only.
    config:
        All tuneable knobs.
    expander:
        Synonym table; built from the packaged table (plus
        ``config.custom_synonym_path``) when omitted.
    cache:
        Similarity memo; a private one is created when omitted.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        proposal_source: Optional[ProposalSource] = None,
        config: Optional[EngineConfig] = None,
        expander: Optional[SynonymExpander] = None,
        cache: Optional[SimilarityCache] = None,
    ) -> None:
        self._config = config or EngineConfig()

        # Bootstrap logging before anything else
        configure_logging(level=self._config.log_level)

        self._catalog = catalog
        self._source = proposal_source

        self._expander = expander or SynonymExpander()
        if self._config.custom_synonym_path:
            self._expander.load_table(self._config.custom_synonym_path)

        self._scorer = SimilarityScorer(
            expander=self._expander,
            config=self._config.scoring,
            cache=cache,
            normalizer=TitleNormalizer(),
        )
        self._dedup = Deduplicator(self._scorer, self._config.matching)
        self._builder = MappingBuilder(self._scorer, self._config.matching)
        self._fallback = FallbackProposer(self._config.proposal.fallback_title_limit)
        self._rng = random.Random(self._config.proposal.sample_seed)

        logger.info(
            "Engine initialised — synonyms=%d, creation=%.2f, approval=%.2f, "
            "duplicate=%.2f, source=%s",
            self._expander.size,
            self._config.matching.creation_threshold,
            self._config.matching.approval_threshold,
            self._config.matching.duplicate_threshold,
            type(self._source).__name__ if self._source else "fallback-only",
        )

    @property
    def scorer(self) -> SimilarityScorer:
        return self._scorer

    # ------------------------------------------------------------------ #
    # Catalog
    # ------------------------------------------------------------------ #

    def load_catalog(self) -> List[StandardRole]:
        """Fetch all active standard roles, one page at a time.

        Raises
        ------
        CatalogLoadError
            If any page fails.
        """
        page_size = self._config.persistence.catalog_page_size
        roles: List[StandardRole] = []
        offset = 0
        while True:
            try:
                page = self._catalog.fetch_standard_roles(offset, page_size)
            except Exception as exc:
                raise CatalogLoadError(
                    f"Failed to load standard roles at offset {offset}: {exc}"
                ) from exc
            roles.extend(page)
            if len(page) < page_size:
                break
            offset += page_size

        logger.info("Loaded %d standard role(s)", len(roles))
        return roles

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #

    def reconcile(
        self,
        records: Sequence[UploadedRoleRecord],
        catalog_batch_id: Optional[str] = None,
        existing_roles: Optional[Sequence[StandardRole]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ReconciliationResult:
        """Execute one reconciliation run.

        Parameters
        ----------
        records:
            Uploaded role records; records with empty titles are ignored.
        catalog_batch_id:
            Stamped on every mapping.
        existing_roles:
            Pre-loaded catalog; loaded through the repository when ``None``.
        cancel_token:
            Checked after catalog load, after role creation and between
            mapping chunks.

        Raises
        ------
        InputError
            No record has a title.
        CatalogLoadError
            The catalog could not be read.
        """
        records = [r for r in records if r.title and r.title.strip()]
        if not records:
            raise InputError("No role data found")

        result = ReconciliationResult(
            catalog_batch_id=catalog_batch_id,
            records_processed=len(records),
        )

        existing = list(existing_roles) if existing_roles is not None else self.load_catalog()
        if self._cancelled(cancel_token, result, "after catalog load"):
            return result

        # --- Step 1: Find records the catalog cannot place ----------------
        unmatched = [
            r for r in records
            if self._builder.disposition(self._builder.best_match(r.title, existing)[1]) is None
        ]
        logger.info(
            "%d of %d record(s) have no acceptable match in the existing catalog",
            len(unmatched),
            len(records),
        )

        # --- Step 2: Proposals + deduplication ----------------------------
        proposals = ProposalResult()
        if self._should_propose(len(unmatched), len(records)):
            pool = unmatched or records
            proposals = self._propose(pool, existing)
            result.used_fallback = proposals.used_fallback

            dedup = self._dedup.filter(proposals.new_roles, existing)
            result.duplicates_suppressed = len(dedup.duplicates)
            if dedup.accepted:
                try:
                    result.created_roles = self._catalog.insert_standard_roles(dedup.accepted)
                except PersistenceError as exc:
                    logger.error("Error creating standard roles: %s", exc)
                else:
                    logger.info(
                        "Created %d unique new standard role(s)",
                        len(result.created_roles),
                    )
            else:
                logger.info("All proposed roles were duplicates, no new roles created")

        if self._cancelled(cancel_token, result, "after role creation"):
            return result

        # --- Step 3: Mappings ---------------------------------------------
        full_catalog = existing + result.created_roles
        built = self._builder.build(
            records,
            full_catalog,
            existing_matches=proposals.existing_matches,
            catalog_batch_id=catalog_batch_id,
        )
        result.records_below_threshold = len(built.skipped)

        # --- Step 4: Chunked persistence ----------------------------------
        chunk_size = self._config.persistence.mapping_chunk_size
        for number, chunk in enumerate(chunked(built.mappings, chunk_size), start=1):
            if self._cancelled(cancel_token, result, f"before mapping chunk {number}"):
                return result
            try:
                self._catalog.insert_role_mappings(chunk)
            except PersistenceError as exc:
                result.mappings_failed += len(chunk)
                logger.error("Batch %d failed: %s", number, exc)
            else:
                result.mappings.extend(chunk)

        logger.info(
            "Run complete — processed=%d, roles_created=%d, mappings=%d, "
            "failed=%d, below_threshold=%d, duplicates=%d, fallback=%s",
            result.records_processed,
            result.standard_roles_created,
            result.mappings_created,
            result.mappings_failed,
            result.records_below_threshold,
            result.duplicates_suppressed,
            result.used_fallback,
        )
        return result

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _should_propose(self, unmatched: int, total: int) -> bool:
        cfg = self._config.proposal
        if cfg.always_propose:
            return True
        if unmatched == 0:
            return False
        return unmatched / total >= cfg.unmatched_fraction_trigger

    def _propose(
        self,
        pool: Sequence[UploadedRoleRecord],
        existing: Sequence[StandardRole],
    ) -> ProposalResult:
        cfg = self._config.proposal
        sample = build_sample(pool, cfg.sample_size, self._rng)

        if self._source is not None:
            summary = summarize_catalog(existing, cfg.catalog_summary_size)
            try:
                result = self._source.propose_roles(
                    sample, summary, total_records=len(pool)
                )
            except ProposalSourceError as exc:
                logger.warning("Proposal source failed (%s); using fallback analysis", exc)
            except Exception:
                logger.exception("Proposal source crashed; using fallback analysis")
            else:
                logger.info(
                    "Proposal source returned %d role(s), %d direct match(es)",
                    len(result.new_roles),
                    len(result.existing_matches),
                )
                return result

        return self._fallback.propose(s["title"] for s in sample)

    @staticmethod
    def _cancelled(
        token: Optional[CancellationToken],
        result: ReconciliationResult,
        stage: str,
    ) -> bool:
        if token is not None and token.cancelled:
            logger.warning("Run cancelled %s", stage)
            result.cancelled = True
            return True
        return False
