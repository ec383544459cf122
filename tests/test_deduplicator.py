"""
Unit tests for the Deduplicator.
"""

from __future__ import annotations

import pytest

from role_reconciler.deduplicator import Deduplicator
from role_reconciler.schema import RoleProposal, StandardRole
from role_reconciler.similarity import SimilarityScorer
from role_reconciler.synonym_expander import SynonymExpander


@pytest.fixture
def dedup() -> Deduplicator:
    return Deduplicator(SimilarityScorer(SynonymExpander()))


@pytest.fixture
def catalog() -> list[StandardRole]:
    return [
        StandardRole(
            id="r1",
            title="Network Operations Engineer",
            job_family="Engineering",
            level="Senior",
            department="Network Operations",
        ),
        StandardRole(
            id="r2",
            title="Sales Manager",
            job_family="Sales",
            level="Mid",
            department="Sales",
        ),
    ]


# ======================================================================
# find_duplicate
# ======================================================================

class TestFindDuplicate:
    def test_exact_duplicate_ignores_case(self, dedup, catalog) -> None:
        proposal = RoleProposal(
            title="network operations ENGINEER",
            level="senior",
            department="NETWORK OPERATIONS",
        )
        check = dedup.find_duplicate(proposal, catalog)
        assert check.is_duplicate
        assert check.kind == "exact"
        assert check.existing.id == "r1"
        assert check.score == 1.0

    def test_semantic_duplicate_same_department(self, dedup, catalog) -> None:
        proposal = RoleProposal(
            title="Network Operations Engineer II",
            level="Mid",
            department="Network Operations",
        )
        check = dedup.find_duplicate(proposal, catalog)
        assert check.is_duplicate
        assert check.kind == "semantic"
        assert check.score == pytest.approx(0.95)

    def test_other_department_is_not_duplicate(self, dedup, catalog) -> None:
        proposal = RoleProposal(
            title="Network Operations Engineer II",
            level="Senior",
            department="Field Services",
        )
        assert not dedup.find_duplicate(proposal, catalog).is_duplicate

    def test_same_title_other_level_is_semantic(self, dedup, catalog) -> None:
        proposal = RoleProposal(
            title="Network Operations Engineer",
            level="Junior",
            department="Network Operations",
        )
        check = dedup.find_duplicate(proposal, catalog)
        assert check.kind == "semantic"
        assert check.score == 1.0

    def test_missing_departments_compare_equal(self, dedup) -> None:
        existing = [StandardRole(id="x", title="Field Technician")]
        check = dedup.find_duplicate(RoleProposal(title="Field Technician"), existing)
        assert check.kind == "exact"

    def test_unrelated_title(self, dedup, catalog) -> None:
        proposal = RoleProposal(title="Sales Director", department="Sales", level="Senior")
        assert not dedup.find_duplicate(proposal, catalog).is_duplicate

    def test_duplicate_at_exact_threshold(self, dedup) -> None:
        existing = [StandardRole(id="q", title="Mgr QA", department="Quality")]
        check = dedup.find_duplicate(RoleProposal(title="QA Mgr", department="Quality"), existing)
        assert check.kind == "semantic"
        assert check.score == 0.9

    def test_empty_catalog(self, dedup) -> None:
        assert not dedup.find_duplicate(RoleProposal(title="Anything"), []).is_duplicate


# ======================================================================
# filter
# ======================================================================

class TestFilter:
    def test_splits_accepted_and_duplicates(self, dedup, catalog) -> None:
        proposals = [
            RoleProposal(title="Network Operations Engineer", level="Senior",
                         department="Network Operations"),
            RoleProposal(title="RF Planning Engineer", level="Mid",
                         department="Radio Access"),
        ]
        result = dedup.filter(proposals, catalog)
        assert [p.title for p in result.accepted] == ["RF Planning Engineer"]
        assert len(result.duplicates) == 1
        assert [r.id for r in result.matched_existing] == ["r1"]

    def test_near_identical_in_same_batch_yield_one(self, dedup) -> None:
        proposals = [
            RoleProposal(title="Core Network Engineer", department="Network Operations"),
            RoleProposal(title="Core Network Engineer II", department="Network Operations"),
        ]
        result = dedup.filter(proposals, [])
        assert [p.title for p in result.accepted] == ["Core Network Engineer"]
        # duplicate of a proposal, not of a catalog role
        assert result.matched_existing == []

    def test_idempotent_on_second_pass(self, dedup, catalog) -> None:
        proposals = [
            RoleProposal(title="RF Planning Engineer", level="Mid", department="Radio Access"),
        ]
        first = dedup.filter(proposals, catalog)
        inserted = [p.to_role(f"new-{i}") for i, p in enumerate(first.accepted)]
        second = dedup.filter(proposals, catalog + inserted)
        assert second.accepted == []
        assert second.duplicates[0].kind == "exact"
