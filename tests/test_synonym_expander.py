"""
Unit tests for the SynonymExpander.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from role_reconciler.exceptions import SynonymTableError
from role_reconciler.synonym_expander import SynonymExpander, validate_table


@pytest.fixture
def expander() -> SynonymExpander:
    return SynonymExpander()


# ======================================================================
# Expansion
# ======================================================================

class TestExpand:
    def test_concept_expands_to_synonyms(self, expander: SynonymExpander) -> None:
        result = expander.expand("manager")
        assert {"manager", "mgr", "supervisor", "lead", "director", "head"} <= result

    def test_synonym_expands_to_concept(self, expander: SynonymExpander) -> None:
        result = expander.expand("mgr")
        assert "mgr" in result
        assert "manager" in result

    def test_synonym_in_several_sets(self, expander: SynonymExpander) -> None:
        # "lead" is listed under both manager and senior
        result = expander.expand("lead")
        assert {"lead", "manager", "senior"} <= result

    def test_case_insensitive(self, expander: SynonymExpander) -> None:
        assert expander.expand("NOC") == expander.expand("noc")
        assert "network operations center" in expander.expand("NOC")

    def test_telecom_jargon(self, expander: SynonymExpander) -> None:
        assert "radio access network" in expander.expand("ran")
        assert "telecom" in expander.expand("telco")

    def test_unknown_word_is_itself(self, expander: SynonymExpander) -> None:
        assert expander.expand("widget") == {"widget"}

    def test_multi_word_concept(self, expander: SynonymExpander) -> None:
        assert "human resources" in expander.expand("hr")


# ======================================================================
# Loading and validation
# ======================================================================

class TestLoading:
    def test_packaged_table_loaded(self, expander: SynonymExpander) -> None:
        assert expander.size >= 30
        assert "engineer" in expander.concepts()

    def test_explicit_table(self) -> None:
        exp = SynonymExpander({"Technician": ["Tech", "techn"]})
        assert exp.size == 1
        assert exp.expand("techn") == {"techn", "technician"}

    def test_load_table_merges(self, tmp_path: Path, expander: SynonymExpander) -> None:
        path = tmp_path / "extra.json"
        path.write_text(json.dumps({
            "engineer": ["engr"],
            "fiber": ["fibre", "ftth"],
        }), encoding="utf-8")

        count = expander.load_table(path)
        assert count == 2
        assert "engineer" in expander.expand("engr")
        assert "developer" in expander.expand("engineer")  # old entries kept
        assert "fiber" in expander.expand("ftth")

    def test_invalid_json_file(self, tmp_path: Path, expander: SynonymExpander) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SynonymTableError, match="not valid JSON"):
            expander.load_table(path)

    def test_root_must_be_object(self) -> None:
        with pytest.raises(SynonymTableError, match="JSON object"):
            validate_table(["engineer"])

    def test_values_must_be_lists(self) -> None:
        with pytest.raises(SynonymTableError, match="must be a list"):
            validate_table({"engineer": "engr"})

    def test_blank_synonym_rejected(self) -> None:
        with pytest.raises(SynonymTableError, match="invalid synonym"):
            validate_table({"engineer": ["engr", "  "]})

    def test_as_dict_returns_copy(self, expander: SynonymExpander) -> None:
        d = expander.as_dict()
        d["manager"].add("injected")
        assert "injected" not in expander.expand("manager")
