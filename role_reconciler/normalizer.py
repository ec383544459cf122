"""
Title Normalization Layer.

Transforms raw job titles into a uniform representation so that the
similarity scorer operates on clean, comparable strings.

Transformations applied (in order):
1. Lowercase conversion
2. Every non-alphanumeric character (underscore included) → space
3. Collapse runs of whitespace into a single space
4. Strip leading / trailing whitespace
"""

from __future__ import annotations

import re
from typing import Optional

from role_reconciler.logging_setup import get_logger

logger = get_logger("normalizer")


class TitleNormalizer:
    """Stateless title normaliser.  All methods are pure functions."""

    _NON_ALNUM_RE = re.compile(r"[\W_]")

    _MULTI_SPACE_RE = re.compile(r"\s+")

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def normalize(self, raw: Optional[str]) -> str:
        """Return the comparable form of a raw title.

        ``"Sr. Network-Engineer "`` becomes ``"sr network engineer"``.
        Empty or ``None`` input yields ``""``; rejecting empty titles is
        the caller's job.
        """
        if not raw:
            return ""
        text = raw.lower()
        text = self._NON_ALNUM_RE.sub(" ", text)
        text = self._MULTI_SPACE_RE.sub(" ", text).strip()

        logger.debug("normalize: %r → %r", raw, text)
        return text

    def tokens(self, raw: Optional[str], min_length: int = 2) -> list[str]:
        """Normalise and split into whitespace tokens, dropping short ones."""
        return [t for t in self.normalize(raw).split(" ") if len(t) >= min_length]

    @staticmethod
    def casefold_field(value: Optional[str]) -> str:
        """Comparable form of a department / level field (``None`` → ``""``)."""
        if value is None:
            return ""
        return str(value).strip().lower()
