"""
Upload Reader.

Turns uploaded files into ``RawUploadFile`` tables (header row + data rows)
and extracts ``UploadedRoleRecord`` objects from them.

Source organisations name their columns differently ("Role Title",
"Position", "Job Title", ...).  Columns are resolved through alias lists
from ``IngestConfig``: an exact alias match first (case, spacing and
underscores ignored), then a ``rapidfuzz`` match for near-miss headers such
as "Job Titel".  Rows without a title never reach the engine.
"""

from __future__ import annotations

import csv
import json
import re
from io import StringIO
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import openpyxl
from rapidfuzz import fuzz, process

from role_reconciler.config import IngestConfig
from role_reconciler.logging_setup import get_logger
from role_reconciler.schema import RawUploadFile, UploadedRoleRecord

logger = get_logger("upload_reader")

SUPPORTED_EXTENSIONS = {".csv", ".json", ".xlsx", ".txt"}

_HEADER_SEP_RE = re.compile(r"[\s_\-]+")


def _canonical_header(header: Any) -> str:
    if header is None:
        return ""
    return _HEADER_SEP_RE.sub(" ", str(header)).strip().lower()


def _cell_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------

def resolve_column(
    headers: Sequence[Any],
    aliases: Sequence[str],
    fuzzy_threshold: float = 90.0,
) -> Optional[int]:
    """Return the index of the column matching one of ``aliases``.

    Alias order is priority order for exact matches.  When nothing matches
    exactly, the best ``rapidfuzz`` ratio at or above ``fuzzy_threshold``
    wins.
    """
    canon_headers = [_canonical_header(h) for h in headers]
    canon_aliases = [_canonical_header(a) for a in aliases]

    for alias in canon_aliases:
        if alias in canon_headers:
            return canon_headers.index(alias)

    best: Optional[tuple[int, float]] = None
    for alias in canon_aliases:
        hit = process.extractOne(
            alias,
            canon_headers,
            scorer=fuzz.ratio,
            score_cutoff=fuzzy_threshold,
        )
        if hit is None:
            continue
        _, score, index = hit
        if best is None or score > best[1]:
            best = (index, score)

    if best is not None:
        logger.info(
            "Fuzzy header match: %r for aliases %s (score=%.1f)",
            headers[best[0]],
            list(aliases)[:3],
            best[1],
        )
        return best[0]
    return None


# ---------------------------------------------------------------------------
# Record extraction
# ---------------------------------------------------------------------------

class RecordExtractor:
    """Extract role records from raw upload tables.

    Parameters
    ----------
    config:
        Column aliases, fuzzy header threshold and per-file row cap.
    """

    def __init__(self, config: Optional[IngestConfig] = None) -> None:
        self._config = config or IngestConfig()

    def extract_file(self, upload: RawUploadFile) -> List[UploadedRoleRecord]:
        cfg = self._config
        title_idx = resolve_column(upload.headers, cfg.title_aliases, cfg.header_fuzzy_threshold)
        if title_idx is None:
            logger.warning(
                "No title column in %r (headers=%s); file skipped",
                upload.file_name,
                upload.headers,
            )
            return []
        dept_idx = resolve_column(upload.headers, cfg.department_aliases, cfg.header_fuzzy_threshold)
        level_idx = resolve_column(upload.headers, cfg.level_aliases, cfg.header_fuzzy_threshold)

        rows = upload.rows
        if cfg.max_rows_per_file is not None:
            rows = rows[:cfg.max_rows_per_file]

        def cell(row: Sequence[Any], idx: Optional[int]) -> Optional[str]:
            if idx is None or idx >= len(row):
                return None
            return _cell_text(row[idx])

        records: List[UploadedRoleRecord] = []
        for row in rows:
            title = cell(row, title_idx)
            if title is None:
                continue
            records.append(UploadedRoleRecord(
                title=title,
                department=cell(row, dept_idx),
                level=cell(row, level_idx),
                source_file=upload.file_name or "unknown",
            ))

        logger.info(
            "Extracted %d role record(s) from %r (%d rows read)",
            len(records),
            upload.file_name,
            len(rows),
        )
        return records

    def extract(self, uploads: Iterable[RawUploadFile]) -> List[UploadedRoleRecord]:
        records: List[UploadedRoleRecord] = []
        for upload in uploads:
            records.extend(self.extract_file(upload))
        return records


# ---------------------------------------------------------------------------
# File readers
# ---------------------------------------------------------------------------

def _split_table(file_name: str, table: List[List[Any]]) -> RawUploadFile:
    """First non-empty row is the header row."""
    while table and not any(_cell_text(c) for c in table[0]):
        table = table[1:]
    if not table:
        return RawUploadFile(file_name=file_name, headers=[], rows=[])
    headers = ["" if h is None else str(h).strip() for h in table[0]]
    rows = [list(r) for r in table[1:] if any(_cell_text(c) for c in r)]
    return RawUploadFile(file_name=file_name, headers=headers, rows=rows)


def read_csv(source: Union[str, Path], file_name: Optional[str] = None) -> RawUploadFile:
    """Read a CSV file path or raw CSV text."""
    if isinstance(source, Path) or (
        isinstance(source, str) and "\n" not in source and Path(source).exists()
    ):
        path = Path(source)
        with open(path, encoding="utf-8-sig", newline="") as fh:
            table = list(csv.reader(fh))
        name = file_name or path.name
    else:
        table = list(csv.reader(StringIO(source)))
        name = file_name or "upload.csv"
    return _split_table(name, table)


def read_json(source: Union[str, Path], file_name: Optional[str] = None) -> RawUploadFile:
    """Read a JSON file or string.

    Supports two shapes:
    * Array of objects ``[{"Role Title": "...", "Department": "..."}, ...]``
    * Table object ``{"headers": [...], "rows": [[...], ...]}``
    """
    if isinstance(source, Path) or (
        isinstance(source, str) and not source.lstrip().startswith(("{", "["))
    ):
        path = Path(source)
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        name = file_name or path.name
    else:
        data = json.loads(source)
        name = file_name or "upload.json"

    if isinstance(data, dict) and "headers" in data:
        return RawUploadFile(
            file_name=data.get("fileName") or name,
            headers=[str(h) for h in data["headers"]],
            rows=[list(r) for r in data.get("rows", [])],
        )

    if isinstance(data, list):
        headers: List[str] = []
        for item in data:
            if isinstance(item, dict):
                for key in item:
                    if key not in headers:
                        headers.append(key)
            else:
                logger.warning("Skipping unrecognised JSON array element: %r", item)
        rows = [
            [item.get(h) for h in headers]
            for item in data
            if isinstance(item, dict)
        ]
        return RawUploadFile(file_name=name, headers=headers, rows=rows)

    raise ValueError(f"Unsupported JSON root type: {type(data).__name__}")


def read_excel(source: Union[str, Path]) -> List[RawUploadFile]:
    """Read every non-empty sheet of an ``.xlsx`` workbook."""
    path = Path(source)
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        uploads: List[RawUploadFile] = []
        for sheet_name in wb.sheetnames:
            ws = wb[sheet_name]
            table = [list(row) for row in ws.iter_rows(values_only=True)]
            name = path.name if len(wb.sheetnames) == 1 else f"{path.name}:{sheet_name}"
            upload = _split_table(name, table)
            if upload.headers:
                logger.info(
                    "Parsed sheet %r: %d data rows", sheet_name, len(upload.rows)
                )
                uploads.append(upload)
        return uploads
    finally:
        wb.close()


def read_dataframe(df: Any, file_name: str = "dataframe") -> RawUploadFile:
    """Read from a pandas DataFrame; column names become headers."""
    try:
        import pandas as pd  # noqa: F811
    except ImportError as exc:
        raise ImportError(
            "pandas is required to use read_dataframe"
        ) from exc

    if not isinstance(df, pd.DataFrame):
        raise TypeError(f"Expected pandas DataFrame, got {type(df).__name__}")

    clean = df.astype(object).where(pd.notna(df), None)
    return RawUploadFile(
        file_name=file_name,
        headers=[str(c) for c in clean.columns],
        rows=clean.values.tolist(),
    )


def read_upload(path: Union[str, Path]) -> List[RawUploadFile]:
    """Dispatch on file extension; returns one table per sheet / file."""
    path = Path(path)
    ext = path.suffix.lower()
    if ext in (".csv", ".txt"):
        return [read_csv(path)]
    if ext == ".json":
        return [read_json(path)]
    if ext == ".xlsx":
        return read_excel(path)
    raise ValueError(f"Unsupported file type: {ext!r}")
