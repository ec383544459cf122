"""
Error taxonomy for a reconciliation run.

Only ``InputError`` and ``CatalogLoadError`` end a run.  Proposal-source
failures are recovered by the deterministic fallback and persistence
failures are counted per chunk.
"""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for every error raised by the engine."""


class InputError(ReconciliationError):
    """The upload session holds no usable role data."""


class CatalogLoadError(ReconciliationError):
    """The existing standard-role catalog could not be loaded."""


class ProposalSourceError(ReconciliationError):
    """The external proposal source failed (network, HTTP status, timeout)."""


class MalformedProposalError(ProposalSourceError):
    """The proposal source answered, but the payload is not usable JSON."""


class PersistenceError(ReconciliationError):
    """Writing roles or mappings to the store failed."""


class SynonymTableError(ReconciliationError):
    """A synonym table file does not have the expected shape."""


class SessionNotFoundError(ReconciliationError):
    """No upload session exists for the given identifier."""
