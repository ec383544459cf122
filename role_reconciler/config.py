"""
Run configuration for Role Reconciler.

Scoring weights, triage thresholds, proposal endpoint settings, ingest
aliases and page sizes, grouped per layer and aggregated by ``EngineConfig``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ScoringConfig:
    """Weights of the title similarity formula."""

    exact_weight: float = 0.6
    semantic_weight: float = 0.3
    substring_weight: float = 0.1

    # Bonus when the first / last tokens of both titles agree
    first_token_bonus: float = 0.2
    last_token_bonus: float = 0.1

    # Tokens must be longer than this to take part in substring matching
    substring_min_length: int = 3

    # Highest score a non-identical pair can reach; 1.0 is reserved for
    # titles that normalise to the same string.
    max_partial_score: float = 0.98

    # Compare first / last tokens through the synonym expander instead of
    # verbatim ("Sr Engineer" vs "Senior Engineer").
    expand_position_tokens: bool = False


@dataclass(frozen=True)
class MatchingConfig:
    """Thresholds (0.0–1.0) that decide what happens to a scored title."""

    # Below this a record gets no mapping at all
    creation_threshold: float = 0.6

    # At or above this a mapping is auto-approved
    approval_threshold: float = 0.85

    # A proposed role this close to an existing one in the same department
    # is treated as a duplicate
    duplicate_threshold: float = 0.9


@dataclass(frozen=True)
class ProposalConfig:
    """Controls the external role-proposal source and its fallback."""

    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-4.1"

    # Name of the environment variable holding the bearer token
    api_key_env: str = "OPENAI_API_KEY"

    timeout_seconds: float = 60.0
    temperature: float = 0.3
    max_tokens: int = 2000

    # Sampled uploaded titles / catalog roles sent with the request
    sample_size: int = 50
    catalog_summary_size: int = 12

    # Number of unmatched titles the deterministic fallback turns into roles
    fallback_title_limit: int = 3

    # Fraction of uploaded records that must be unmatched before proposals
    # are requested.  0.0 means "any unmatched record".
    unmatched_fraction_trigger: float = 0.0

    # Request proposals even when every record already has a match
    always_propose: bool = False

    # Seed for the random sample; ``None`` draws a fresh sample every run
    sample_seed: Optional[int] = None


@dataclass(frozen=True)
class IngestConfig:
    """Controls extraction of role records from raw uploaded rows."""

    title_aliases: tuple[str, ...] = (
        "Role Title", "role_title", "title", "Position", "Job Title",
    )
    department_aliases: tuple[str, ...] = (
        "Department", "department", "Division", "Unit",
    )
    level_aliases: tuple[str, ...] = (
        "Level", "level", "Role Level", "Seniority", "Band", "seniority_band",
    )

    # rapidfuzz score (0–100) a header needs to count as an alias when no
    # exact alias is present
    header_fuzzy_threshold: float = 90.0

    # Rows read per uploaded file; ``None`` reads everything
    max_rows_per_file: Optional[int] = 100


@dataclass(frozen=True)
class PersistenceConfig:
    """Page and chunk sizes for talking to the catalog store."""

    catalog_page_size: int = 1000
    mapping_chunk_size: int = 50


@dataclass(frozen=True)
class EngineConfig:
    """Top-level configuration aggregating all sub-configs."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    proposal: ProposalConfig = field(default_factory=ProposalConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)

    # Logging level for the reconciliation audit trail
    log_level: int = logging.INFO

    # Optional path to a user-supplied synonym JSON file that is *merged*
    # with the packaged table.
    custom_synonym_path: Optional[Path] = None
