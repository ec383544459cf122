"""
Title Similarity Scoring.

Scores two job titles in ``[0.0, 1.0]`` from four token-level signals:

* **exact** — tokens of A that literally appear in B
* **semantic** — tokens of A whose synonym expansion hits a token of B
* **substring** — tokens of A (> 3 chars) containing, or contained in, a
  token of B (> 3 chars); catches compounds such as "telecom" /
  "telecommunications"
* **position** — bonus when the first (and last) tokens agree

Each count is divided by the longer token list and the weighted sum is
capped below 1.0; only titles that normalise to the same string score 1.0.

The score is not symmetric: all three counts are taken from A's side, so
``similarity(a, b)`` and ``similarity(b, a)`` can differ when the token
lists have repeated or overlapping words.  The cache therefore keys on the
ordered pair.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from role_reconciler.config import ScoringConfig
from role_reconciler.logging_setup import get_logger
from role_reconciler.normalizer import TitleNormalizer
from role_reconciler.synonym_expander import SynonymExpander

logger = get_logger("similarity")


class SimilarityCache:
    """Memo of ``(lower(a), lower(b)) → score`` owned by one scorer."""

    def __init__(self) -> None:
        self._scores: Dict[Tuple[str, str], float] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(a: str, b: str) -> Tuple[str, str]:
        return a.lower(), b.lower()

    def get(self, a: str, b: str) -> Optional[float]:
        score = self._scores.get(self.key(a, b))
        if score is None:
            self.misses += 1
        else:
            self.hits += 1
        return score

    def put(self, a: str, b: str, score: float) -> None:
        self._scores[self.key(a, b)] = score

    def clear(self) -> None:
        self._scores.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._scores)


class SimilarityScorer:
    """Weighted token-overlap similarity between two role titles.

    Parameters
    ----------
    expander:
        Synonym table used for the semantic signal.
    config:
        Weights, bonuses and the score cap.
    cache:
        Memo to use.  A fresh one is created when omitted; pass a shared
        instance to reuse scores across engines.
    normalizer:
        Title normaliser; a default ``TitleNormalizer`` when omitted.
    """

    def __init__(
        self,
        expander: SynonymExpander,
        config: Optional[ScoringConfig] = None,
        cache: Optional[SimilarityCache] = None,
        normalizer: Optional[TitleNormalizer] = None,
    ) -> None:
        self._expander = expander
        self._config = config or ScoringConfig()
        self._cache = cache if cache is not None else SimilarityCache()
        self._normalizer = normalizer or TitleNormalizer()

    @property
    def cache(self) -> SimilarityCache:
        return self._cache

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def similarity(self, title_a: str, title_b: str) -> float:
        """Return the similarity of two raw titles in ``[0.0, 1.0]``."""
        cached = self._cache.get(title_a, title_b)
        if cached is not None:
            return cached

        score = self._score(title_a, title_b)
        self._cache.put(title_a, title_b, score)
        logger.debug("similarity(%r, %r) = %.4f", title_a, title_b, score)
        return score

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #

    def _score(self, title_a: str, title_b: str) -> float:
        cfg = self._config
        norm_a = self._normalizer.normalize(title_a)
        norm_b = self._normalizer.normalize(title_b)

        if norm_a == norm_b:
            return 1.0

        words_a = self._normalizer.tokens(norm_a)
        words_b = self._normalizer.tokens(norm_b)
        if not words_a or not words_b:
            return 0.0

        set_b = set(words_b)
        max_words = max(len(words_a), len(words_b))

        exact = sum(1 for w in words_a if w in set_b)

        semantic = sum(
            1 for w in words_a if not self._expander.expand(w).isdisjoint(set_b)
        )

        substring = 0
        min_len = cfg.substring_min_length
        for wa in words_a:
            if len(wa) <= min_len:
                continue
            for wb in words_b:
                if len(wb) > min_len and (wa in wb or wb in wa):
                    substring += 1
                    break

        bonus = 0.0
        if self._same_token(words_a[0], words_b[0]):
            bonus += cfg.first_token_bonus
        if (
            len(words_a) > 1
            and len(words_b) > 1
            and self._same_token(words_a[-1], words_b[-1])
        ):
            bonus += cfg.last_token_bonus

        total = (
            cfg.exact_weight * exact / max_words
            + cfg.semantic_weight * semantic / max_words
            + cfg.substring_weight * substring / max_words
            + bonus
        )
        # Trim float noise so 0.6 + 0.3 compares equal to a 0.9 threshold
        total = round(total, 9)
        return max(0.0, min(total, cfg.max_partial_score))

    def _same_token(self, a: str, b: str) -> bool:
        if a == b:
            return True
        if self._config.expand_position_tokens:
            return b in self._expander.expand(a)
        return False
