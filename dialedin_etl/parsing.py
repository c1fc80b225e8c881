from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import time, timedelta
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from dialedin_etl.errors import ParseError
from dialedin_etl.registry import ReportType, ReportTypeConfig, classify, get_config


logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass
class ParsedReport:
    """Rows of a single report type; exactly one collection is ever populated."""

    report_type: ReportType
    rows: List[Row]

    @property
    def collection(self) -> str:
        return get_config(self.report_type).collection

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_metadata(self) -> Dict[str, List[Row]]:
        return {self.collection: self.rows}

    @classmethod
    def from_metadata(cls, report_type: str, metadata: Optional[Dict[str, Any]]) -> "ParsedReport":
        rtype = ReportType(report_type)
        rows = (metadata or {}).get(get_config(rtype).collection) or []
        return cls(report_type=rtype, rows=list(rows))


@dataclass
class MergedRows:
    """Union of every stored report for one date, keyed by report type."""

    by_type: Dict[ReportType, List[Row]] = field(default_factory=dict)

    def add(self, report: ParsedReport) -> None:
        self.by_type.setdefault(report.report_type, []).extend(report.rows)

    def get(self, report_type: ReportType) -> List[Row]:
        return self.by_type.get(report_type, [])

    @property
    def report_types(self) -> List[ReportType]:
        return [t for t in ReportType if t in self.by_type]

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.by_type.values())


# (file bytes, filename) -> ParsedReport, raising ParseError on malformed input.
RowParser = Callable[[bytes, str], ParsedReport]


def to_num(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return 0.0 if pd.isna(value) else float(value)
    cleaned = str(value).replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def to_pct(value: Any) -> float:
    if isinstance(value, str):
        return to_num(value.replace("%", ""))
    return to_num(value)


def to_minutes(value: Any) -> float:
    """HH:MM:SS (hours may exceed two digits) to total minutes."""
    if isinstance(value, timedelta):
        return value.total_seconds() / 60
    if isinstance(value, time):
        return value.hour * 60 + value.minute + value.second / 60
    if not isinstance(value, str) or ":" not in value:
        return 0.0
    parts = value.strip().split(":")
    if len(parts) != 3:
        return 0.0
    try:
        hours, minutes, seconds = int(parts[0]), int(parts[1]), int(parts[2])
    except ValueError:
        return 0.0
    return hours * 60 + minutes + seconds / 60


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


_CONVERTERS = {
    "num": to_num,
    "pct": to_pct,
    "minutes": to_minutes,
    "str": to_text,
}


def _is_data_row(raw: Row, config: ReportTypeConfig) -> bool:
    key = to_text(raw.get(config.row_key))
    if not key or key.startswith("Total"):
        return False
    return all(to_text(raw.get(header)) for header in config.require_non_empty)


def rows_from_frame(df: pd.DataFrame, report_type: ReportType) -> List[Row]:
    config = get_config(report_type)
    if df.empty:
        return []
    df = df.rename(columns=lambda c: str(c).strip())
    disposition_columns: List[str] = []
    if config.dynamic_dispositions:
        disposition_columns = [
            c for c in df.columns if c not in config.fixed_headers and not c.startswith("Unnamed")
        ]

    rows: List[Row] = []
    for raw in df.to_dict(orient="records"):
        if not _is_data_row(raw, config):
            continue
        row: Row = {}
        for column in config.columns:
            row[column.field] = _CONVERTERS[column.kind](raw.get(column.header))
        if config.dynamic_dispositions:
            dispositions: Dict[str, float] = {}
            for col in disposition_columns:
                value = to_num(raw.get(col))
                if value > 0:
                    dispositions[col] = value
            row["dispositions"] = dispositions
        rows.append(row)
    return rows


def read_sheet(data: bytes) -> pd.DataFrame:
    """DialedIn exports name their data sheet "Report"; fall back to the first sheet."""
    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, dtype=object)
    if not sheets:
        raise ParseError("Workbook has no sheets")
    df = sheets.get("Report")
    if df is None:
        df = next(iter(sheets.values()))
    return df


def parse_report(data: bytes, filename: str) -> ParsedReport:
    report_type = classify(filename)
    if report_type is None:
        raise ParseError(f"Unrecognized report type for file: {filename}", filename=filename)
    try:
        df = read_sheet(data)
    except ParseError:
        raise
    except Exception as exc:
        raise ParseError(f"Failed to read workbook {filename}: {exc}", filename=filename) from exc
    rows = rows_from_frame(df, report_type)
    logger.info(
        "report parsed",
        extra={"report_type": report_type.value, "file_name": filename, "row_count": len(rows)},
    )
    return ParsedReport(report_type=report_type, rows=rows)
