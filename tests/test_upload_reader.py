"""
Unit tests for upload file readers and record extraction.
"""

from __future__ import annotations

import json
from pathlib import Path

import openpyxl
import pytest

from role_reconciler.config import IngestConfig
from role_reconciler.schema import RawUploadFile
from role_reconciler.upload_reader import (
    RecordExtractor,
    read_csv,
    read_dataframe,
    read_excel,
    read_json,
    read_upload,
    resolve_column,
)


@pytest.fixture
def extractor() -> RecordExtractor:
    return RecordExtractor()


# ======================================================================
# Header resolution
# ======================================================================

class TestResolveColumn:
    def test_exact_alias(self) -> None:
        headers = ["Employee ID", "Job Title", "Division"]
        assert resolve_column(headers, IngestConfig().title_aliases) == 1
        assert resolve_column(headers, IngestConfig().department_aliases) == 2

    def test_spacing_and_case_ignored(self) -> None:
        assert resolve_column(["ROLE_TITLE"], ["Role Title"]) == 0
        assert resolve_column(["  seniority-band "], ["seniority_band"]) == 0

    def test_alias_order_wins(self) -> None:
        headers = ["Title", "Role Title"]
        assert resolve_column(headers, ["Role Title", "title"]) == 1

    def test_fuzzy_near_miss(self) -> None:
        assert resolve_column(["Role Titles", "Dept"], IngestConfig().title_aliases) == 0

    def test_fuzzy_threshold_respected(self) -> None:
        assert resolve_column(["Job Titel"], IngestConfig().title_aliases) is None

    def test_no_headers(self) -> None:
        assert resolve_column([], ["Role Title"]) is None


# ======================================================================
# Record extraction
# ======================================================================

class TestRecordExtractor:
    def test_basic_extraction(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile(
            file_name="acme.csv",
            headers=["Role Title", "Department", "Level"],
            rows=[
                ["NOC Engineer", "Network Operations", "Mid"],
                ["  Sales Rep ", "", None],
            ],
        )
        records = extractor.extract_file(upload)
        assert [r.title for r in records] == ["NOC Engineer", "Sales Rep"]
        assert records[0].department == "Network Operations"
        assert records[1].department is None
        assert records[1].level is None
        assert all(r.source_file == "acme.csv" for r in records)

    def test_empty_titles_skipped(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile("a.csv", ["Title"], [[""], [None], ["   "], ["RF Engineer"]])
        assert [r.title for r in extractor.extract_file(upload)] == ["RF Engineer"]

    def test_short_rows(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile("a.csv", ["Title", "Department"], [["RF Engineer"]])
        record = extractor.extract_file(upload)[0]
        assert record.department is None

    def test_no_title_column(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile("a.csv", ["Name", "Salary"], [["Ann", 10]])
        assert extractor.extract_file(upload) == []

    def test_row_cap(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile("a.csv", ["Title"], [[f"Role {i}"] for i in range(150)])
        assert len(extractor.extract_file(upload)) == 100

    def test_row_cap_disabled(self) -> None:
        extractor = RecordExtractor(IngestConfig(max_rows_per_file=None))
        upload = RawUploadFile("a.csv", ["Title"], [[f"Role {i}"] for i in range(150)])
        assert len(extractor.extract_file(upload)) == 150

    def test_numeric_cells_become_text(self, extractor: RecordExtractor) -> None:
        upload = RawUploadFile("a.csv", ["Title", "Level"], [["Engineer", 3]])
        assert extractor.extract_file(upload)[0].level == "3"

    def test_extract_many_files(self, extractor: RecordExtractor) -> None:
        uploads = [
            RawUploadFile("a.csv", ["Title"], [["A Role"]]),
            RawUploadFile("b.csv", ["Position"], [["B Role"]]),
        ]
        records = extractor.extract(uploads)
        assert [(r.title, r.source_file) for r in records] == [
            ("A Role", "a.csv"),
            ("B Role", "b.csv"),
        ]


# ======================================================================
# Readers
# ======================================================================

class TestReaders:
    def test_read_csv_text(self) -> None:
        upload = read_csv("Role Title,Department\nNOC Engineer,NOC\n,\n", file_name="x.csv")
        assert upload.file_name == "x.csv"
        assert upload.headers == ["Role Title", "Department"]
        assert upload.rows == [["NOC Engineer", "NOC"]]

    def test_read_csv_path(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.csv"
        path.write_text("\ufeffTitle\nRF Engineer\n", encoding="utf-8")
        upload = read_csv(path)
        assert upload.file_name == "roles.csv"
        assert upload.headers == ["Title"]

    def test_read_json_array(self) -> None:
        data = [
            {"Role Title": "NOC Engineer", "Department": "NOC"},
            {"Role Title": "Sales Rep", "Level": "Junior"},
        ]
        upload = read_json(json.dumps(data))
        assert upload.headers == ["Role Title", "Department", "Level"]
        assert upload.rows[1] == ["Sales Rep", None, "Junior"]

    def test_read_json_table(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.json"
        path.write_text(json.dumps({"headers": ["Title"], "rows": [["RF Engineer"]]}))
        upload = read_json(path)
        assert upload.file_name == "roles.json"
        assert upload.rows == [["RF Engineer"]]

    def test_read_json_scalar_root(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.json"
        path.write_text("42")
        with pytest.raises(ValueError, match="Unsupported JSON root"):
            read_json(path)

    def test_read_excel_single_sheet(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Role Title", "Department"])
        ws.append(["NOC Engineer", "NOC"])
        ws.append([None, None])
        wb.save(path)

        uploads = read_excel(path)
        assert len(uploads) == 1
        assert uploads[0].file_name == "roles.xlsx"
        assert uploads[0].rows == [["NOC Engineer", "NOC"]]

    def test_read_excel_many_sheets(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.xlsx"
        wb = openpyxl.Workbook()
        wb.active.append(["Title"])
        wb.active.append(["RF Engineer"])
        other = wb.create_sheet("Other")
        other.append(["Title"])
        other.append(["Sales Rep"])
        wb.create_sheet("Empty")
        wb.save(path)

        uploads = read_excel(path)
        assert [u.file_name for u in uploads] == ["roles.xlsx:Sheet", "roles.xlsx:Other"]

    def test_read_dataframe(self) -> None:
        pd = pytest.importorskip("pandas")
        df = pd.DataFrame({"Title": ["RF Engineer", "Sales Rep"], "Level": ["Senior", None]})
        upload = read_dataframe(df, file_name="frame")
        assert upload.headers == ["Title", "Level"]
        assert upload.rows[1] == ["Sales Rep", None]

    def test_read_dataframe_type_check(self) -> None:
        pytest.importorskip("pandas")
        with pytest.raises(TypeError):
            read_dataframe([["not", "a", "frame"]])

    def test_read_upload_dispatch(self, tmp_path: Path) -> None:
        path = tmp_path / "roles.txt"
        path.write_text("Title\nRF Engineer\n")
        uploads = read_upload(path)
        assert uploads[0].rows == [["RF Engineer"]]

    def test_read_upload_unsupported(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unsupported file type"):
            read_upload(tmp_path / "roles.pdf")
