from __future__ import annotations

from typing import Optional


class IngestError(Exception):
    kind = "ingest_error"

    def __init__(self, message: str, filename: Optional[str] = None) -> None:
        super().__init__(message)
        self.filename = filename


class ClassificationError(IngestError):
    kind = "unrecognized_report_type"


class ParseError(IngestError):
    kind = "parse_error"


class StoreError(IngestError):
    kind = "store_error"
