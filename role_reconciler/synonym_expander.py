"""
Synonym / Semantic Expansion Engine.

A configurable table mapping a canonical concept (``"manager"``) to the
abbreviations and domain jargon that mean the same thing
(``{"mgr", "supervisor", "lead", ...}``), telecom terms included.

Design decisions
----------------
* The table is data, not code: the default ships as
  ``data/role_synonyms.json`` and further JSON files are merged on top via
  ``load_table``.  Every file is validated before anything is merged.
* Entries are stored lowercased and stripped, so lookups only need to
  lowercase the incoming word.
* A reverse index (synonym → concepts) keeps ``expand`` a pair of
  hash-table hits.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set

from role_reconciler.exceptions import SynonymTableError
from role_reconciler.logging_setup import get_logger

logger = get_logger("synonym_expander")

DEFAULT_TABLE_PATH = Path(__file__).resolve().parent / "data" / "role_synonyms.json"


def validate_table(data: Any, source: str = "<memory>") -> Dict[str, list[str]]:
    """Check the shape of a raw synonym table and return it typed.

    Raises
    ------
    SynonymTableError
        If the root is not an object, a key is blank, or a value is not a
        list of non-empty strings.
    """
    if not isinstance(data, dict):
        raise SynonymTableError(
            f"{source}: synonym table must be a JSON object, "
            f"got {type(data).__name__}"
        )
    table: Dict[str, list[str]] = {}
    for concept, synonyms in data.items():
        if not isinstance(concept, str) or not concept.strip():
            raise SynonymTableError(f"{source}: blank concept key {concept!r}")
        if not isinstance(synonyms, list):
            raise SynonymTableError(
                f"{source}: synonyms of {concept!r} must be a list, "
                f"got {type(synonyms).__name__}"
            )
        for s in synonyms:
            if not isinstance(s, str) or not s.strip():
                raise SynonymTableError(
                    f"{source}: invalid synonym {s!r} under {concept!r}"
                )
        table[concept] = synonyms
    return table


class SynonymExpander:
    """Concept ↔ synonym lookup used by the similarity scorer.

    Parameters
    ----------
    table:
        Initial ``{concept: [synonyms]}`` mapping.  When omitted the packaged
        default table is loaded.
    """

    def __init__(self, table: Optional[Dict[str, Iterable[str]]] = None) -> None:
        self._table: Dict[str, Set[str]] = {}
        self._reverse: Dict[str, Set[str]] = {}

        if table is None:
            self.load_table(DEFAULT_TABLE_PATH)
        else:
            for concept, synonyms in validate_table(
                {k: list(v) for k, v in table.items()}
            ).items():
                self.add_synonyms(concept, synonyms)

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def expand(self, word: str) -> Set[str]:
        """Return ``word`` plus everything the table says it is equivalent to.

        The result holds the word itself, its synonym set when the word is a
        concept, and every concept whose synonym set contains the word.
        """
        key = word.strip().lower()
        result = {key}
        result.update(self._table.get(key, ()))
        result.update(self._reverse.get(key, ()))
        return result

    # ------------------------------------------------------------------ #
    # Extension API
    # ------------------------------------------------------------------ #

    def add_synonyms(self, concept: str, synonyms: Iterable[str]) -> None:
        """Register synonyms for a concept, merging with any existing set."""
        ck = concept.strip().lower()
        bucket = self._table.setdefault(ck, set())
        for s in synonyms:
            sk = s.strip().lower()
            if not sk or sk == ck:
                continue
            bucket.add(sk)
            self._reverse.setdefault(sk, set()).add(ck)
        logger.debug("Synonyms for %r: %d entries", ck, len(bucket))

    def load_table(self, path: Path) -> int:
        """Merge a ``{concept: [synonyms]}`` JSON file into the table.

        Returns the number of concepts read from the file.
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise SynonymTableError(f"{path}: not valid JSON ({exc})") from exc

        table = validate_table(data, source=str(path))
        for concept, synonyms in table.items():
            self.add_synonyms(concept, synonyms)
        logger.info("Loaded %d synonym concepts from %s", len(table), path)
        return len(table)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def size(self) -> int:
        return len(self._table)

    def concepts(self) -> list[str]:
        return sorted(self._table)

    def as_dict(self) -> Dict[str, Set[str]]:
        """Return a *copy* of the internal table."""
        return {k: set(v) for k, v in self._table.items()}
