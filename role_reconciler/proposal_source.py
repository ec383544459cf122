"""
Role Proposal Layer.

When uploaded titles find no acceptable standard role, new roles are
requested from a *proposal source*.  The engine only sees the narrow
``ProposalSource.propose_roles`` interface; what sits behind it is
interchangeable:

* ``LLMProposalSource`` — an OpenAI-compatible chat-completions endpoint.
  Its free-text answer is untrusted: code fences are stripped, the JSON is
  validated and malformed entries are dropped.
* ``RulesProposalSource`` — keyword rules only, no network.

``FallbackProposer`` holds the keyword rules.  The engine also uses it
directly whenever a source raises ``ProposalSourceError``, so a failing
source never stalls catalog growth.
"""

from __future__ import annotations

import json
import os
import random
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from role_reconciler.config import ProposalConfig
from role_reconciler.exceptions import MalformedProposalError, ProposalSourceError
from role_reconciler.logging_setup import get_logger
from role_reconciler.schema import (
    ExistingMatch,
    ProposalResult,
    RoleProposal,
    StandardRole,
    UploadedRoleRecord,
)

logger = get_logger("proposal_source")

SYSTEM_PROMPT = (
    "You are a telecom HR expert. Create concise standard roles. "
    "Respond only with valid JSON."
)

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def build_sample(
    records: Sequence[UploadedRoleRecord],
    size: int,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, str]]:
    """Pick up to ``size`` records at random, in the compact request shape."""
    rng = rng or random.Random()
    picked = rng.sample(list(records), min(size, len(records)))
    return [
        {
            "title": r.title,
            "dept": r.department or "N/A",
            "level": r.level or "N/A",
        }
        for r in picked
    ]


def summarize_catalog(roles: Sequence[StandardRole], size: int) -> List[Dict[str, Any]]:
    """The first ``size`` catalog roles as ``{id, title, family}``."""
    return [
        {"id": r.id, "title": r.title, "family": r.job_family}
        for r in list(roles)[:size]
    ]


def build_prompt(
    sample: Sequence[Dict[str, str]],
    catalog_summary: Sequence[Dict[str, Any]],
    total_records: Optional[int] = None,
) -> str:
    total = total_records if total_records is not None else len(sample)
    return (
        "Analyze sample roles and create telecom standards:\n\n"
        f"SAMPLE ({len(sample)}/{total} total):\n"
        f"{json.dumps(list(sample))}\n\n"
        "EXISTING STANDARDS:\n"
        f"{json.dumps(list(catalog_summary))}\n\n"
        "From the uploaded roles, create telecom-standard roles dynamically. "
        "Do not limit to a fixed number. Only output the unique standards "
        "required to cover the uploaded roles. Respond only with valid JSON:\n"
        "{\n"
        '  "newStandardRoles": [\n'
        "    {\n"
        '      "role_title": "Network Operations Engineer",\n'
        '      "job_family": "Engineering",\n'
        '      "role_level": "Senior",\n'
        '      "department": "Network Operations",\n'
        '      "standard_description": "Manages network infrastructure"\n'
        "    }\n"
        "  ],\n"
        '  "existingMatches": [\n'
        "    {\n"
        '      "uploaded_role_title": "Original Title",\n'
        '      "standard_role_id": "uuid",\n'
        '      "confidence": 85\n'
        "    }\n"
        "  ]\n"
        "}"
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def extract_completion_text(payload: Any) -> str:
    """Pull the generated text out of a completions-style response body."""
    if isinstance(payload, dict):
        choices = payload.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            first = choices[0]
            message = first.get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(first.get("text"), str):
                return first["text"]
        for key in ("text", "content"):
            if isinstance(payload.get(key), str):
                return payload[key]
    raise MalformedProposalError("Unknown AI response format")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json … ``` (or bare ``` … ```) block."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN_RE.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_role(item: Any) -> Optional[RoleProposal]:
    if not isinstance(item, dict):
        return None
    title = _opt_str(item.get("role_title"))
    if title is None:
        return None
    return RoleProposal(
        title=title,
        job_family=_opt_str(item.get("job_family")),
        level=_opt_str(item.get("role_level")),
        department=_opt_str(item.get("department")),
        description=_opt_str(item.get("standard_description")),
    )


def _parse_match(item: Any) -> Optional[ExistingMatch]:
    if not isinstance(item, dict):
        return None
    title = _opt_str(item.get("uploaded_role_title"))
    role_id = _opt_str(item.get("standard_role_id"))
    if title is None or role_id is None:
        return None
    try:
        confidence = float(item.get("confidence"))
    except (TypeError, ValueError):
        return None
    return ExistingMatch(
        uploaded_title=title,
        standard_role_id=role_id,
        confidence=min(max(confidence, 0.0), 100.0),
    )


def parse_proposal_response(text: str) -> ProposalResult:
    """Turn the proposal source's raw text into a ``ProposalResult``.

    Missing ``newStandardRoles`` / ``existingMatches`` arrays default to
    empty; entries that are not well-formed objects are dropped.

    Raises
    ------
    MalformedProposalError
        If the text is not JSON or its root is not an object.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedProposalError(f"Proposal is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedProposalError(
            f"Proposal root must be an object, got {type(data).__name__}"
        )

    raw_roles = data.get("newStandardRoles")
    raw_matches = data.get("existingMatches")
    if not isinstance(raw_roles, list):
        raw_roles = []
    if not isinstance(raw_matches, list):
        raw_matches = []

    roles = [r for r in map(_parse_role, raw_roles) if r is not None]
    matches = [m for m in map(_parse_match, raw_matches) if m is not None]

    dropped = (len(raw_roles) - len(roles)) + (len(raw_matches) - len(matches))
    if dropped:
        logger.warning("Dropped %d malformed proposal entries", dropped)

    return ProposalResult(new_roles=roles, existing_matches=matches)


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

class FallbackProposer:
    """Keyword rules that synthesise a standard role from a raw title."""

    # (keyword, department); first hit wins
    DEPARTMENT_RULES: tuple[tuple[str, str], ...] = (
        ("network", "Network Operations"),
        ("software", "Software Development"),
        ("sales", "Sales"),
        ("hr", "Human Resources"),
    )
    DEFAULT_DEPARTMENT = "General Operations"

    LEVEL_RULES: tuple[tuple[str, str], ...] = (
        ("senior", "Senior"),
        ("lead", "Senior"),
        ("junior", "Junior"),
    )
    DEFAULT_LEVEL = "Mid"

    FAMILY_RULES: tuple[tuple[str, str], ...] = (
        ("Network", "Engineering"),
        ("Software", "Engineering"),
        ("Sales", "Sales"),
    )
    DEFAULT_FAMILY = "Operations"

    GENERIC_ROLE = RoleProposal(
        title="Generic Role",
        job_family="Operations",
        level="Mid",
        department="General Operations",
        description="General operational role",
    )

    _NON_ALPHA_RE = re.compile(r"[^A-Za-z\s]")
    _MULTI_SPACE_RE = re.compile(r"\s+")

    def __init__(self, title_limit: int = 3) -> None:
        self._title_limit = title_limit

    @staticmethod
    def _has_keyword(text: str, keyword: str) -> bool:
        # Keywords must start a word: "hr" hits "HR Officer", not "Three"
        return re.search(rf"\b{re.escape(keyword)}", text) is not None

    def classify_department(self, title: str) -> str:
        lowered = title.lower()
        for keyword, department in self.DEPARTMENT_RULES:
            if self._has_keyword(lowered, keyword):
                return department
        return self.DEFAULT_DEPARTMENT

    def classify_level(self, title: str) -> str:
        lowered = title.lower()
        for keyword, level in self.LEVEL_RULES:
            if self._has_keyword(lowered, keyword):
                return level
        return self.DEFAULT_LEVEL

    def job_family(self, department: str) -> str:
        for marker, family in self.FAMILY_RULES:
            if marker in department:
                return family
        return self.DEFAULT_FAMILY

    def clean_title(self, title: str) -> str:
        text = self._NON_ALPHA_RE.sub("", title)
        return self._MULTI_SPACE_RE.sub(" ", text).strip()

    def propose_one(self, title: str) -> Optional[RoleProposal]:
        cleaned = self.clean_title(title)
        if not cleaned:
            return None
        department = self.classify_department(title)
        return RoleProposal(
            title=cleaned,
            job_family=self.job_family(department),
            level=self.classify_level(title),
            department=department,
            description=f"{title} role in {department}",
        )

    def propose(self, titles: Iterable[str]) -> ProposalResult:
        """One role per distinct title among the first ``title_limit`` usable ones."""
        roles: List[RoleProposal] = []
        seen: set[str] = set()
        for title in titles:
            if len(roles) >= self._title_limit:
                break
            proposal = self.propose_one(title or "")
            if proposal is None or proposal.title.lower() in seen:
                continue
            seen.add(proposal.title.lower())
            roles.append(proposal)

        if not roles:
            roles.append(self.GENERIC_ROLE)

        logger.info("Fallback proposed %d role(s): %s", len(roles), [r.title for r in roles])
        return ProposalResult(new_roles=roles, used_fallback=True)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class ProposalSource(ABC):
    """Anything that can suggest standard roles for unmatched titles."""

    @abstractmethod
    def propose_roles(
        self,
        sample: Sequence[Dict[str, str]],
        catalog_summary: Sequence[Dict[str, Any]],
        total_records: Optional[int] = None,
    ) -> ProposalResult:
        """Return proposed roles and direct matches.

        ``total_records`` is the size of the pool ``sample`` was drawn from.

        Raises
        ------
        ProposalSourceError
            On expected failures.  The engine runs the deterministic
            fallback for these and for any other exception.
        """


class RulesProposalSource(ProposalSource):
    """Keyword-rule source with no external dependency."""

    def __init__(self, proposer: Optional[FallbackProposer] = None) -> None:
        self._proposer = proposer or FallbackProposer()

    def propose_roles(self, sample, catalog_summary, total_records=None) -> ProposalResult:
        result = self._proposer.propose(s.get("title", "") for s in sample)
        # Rules are this source's primary answer, not a fallback
        result.used_fallback = False
        return result


class LLMProposalSource(ProposalSource):
    """Chat-completions backed proposal source.

    One blocking POST with ``config.timeout_seconds``; no retries.

    Parameters
    ----------
    config:
        Endpoint, model, key variable and sampling parameters.
    session:
        Optional ``requests.Session`` (injected in tests).
    api_key:
        Explicit key; read from ``config.api_key_env`` when omitted.
    """

    def __init__(
        self,
        config: Optional[ProposalConfig] = None,
        session: Optional[requests.Session] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self._config = config or ProposalConfig()
        self._session = session or requests.Session()
        self._api_key = api_key if api_key is not None else os.getenv(self._config.api_key_env)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def propose_roles(self, sample, catalog_summary, total_records=None) -> ProposalResult:
        if not self._api_key:
            raise ProposalSourceError(
                f"API key not configured ({self._config.api_key_env} is unset)"
            )

        body = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(sample, catalog_summary, total_records)},
            ],
            "temperature": self._config.temperature,
            "max_completion_tokens": self._config.max_tokens,
        }

        logger.info(
            "Requesting role proposals — sample=%d, catalog_summary=%d, model=%s",
            len(sample),
            len(catalog_summary),
            self._config.model,
        )
        try:
            response = self._session.post(
                self._config.endpoint,
                json=body,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProposalSourceError(f"AI API error: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedProposalError(f"AI API returned non-JSON body: {exc}") from exc

        text = extract_completion_text(payload)
        logger.debug("Raw AI output: %s", text)
        return parse_proposal_response(text)
