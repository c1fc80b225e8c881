from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dialedin_etl.db.models import (
    ACTIVE_STATUSES,
    INGESTION_SOURCES,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    DialedInReport,
)
from dialedin_etl.db.session import SessionLocal
from dialedin_etl.errors import ClassificationError, ParseError, StoreError
from dialedin_etl.parsing import ParsedReport, RowParser, parse_report
from dialedin_etl.registry import classify, extract_date_range, report_date_for
from dialedin_etl.services.archive import ArchiveResult, ArchiveService


logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    record_id: str
    filename: str
    report_type: str
    report_date: date
    row_count: int


def upsert_statement(db: Session, model):
    """Dialect-specific INSERT so ON CONFLICT works on Postgres and SQLite alike."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


def upsert_report(db: Session, values: Dict[str, Any]) -> str:
    stmt = upsert_statement(db, DialedInReport).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["filename", "report_type", "report_date"],
        set_={
            "date_range_start": stmt.excluded.date_range_start,
            "date_range_end": stmt.excluded.date_range_end,
            "raw_file_url": stmt.excluded.raw_file_url,
            "s3_file_key": stmt.excluded.s3_file_key,
            "row_count": stmt.excluded.row_count,
            "ingestion_source": stmt.excluded.ingestion_source,
            "ingestion_status": stmt.excluded.ingestion_status,
            "error_message": stmt.excluded.error_message,
            "processed_at": None,
            "raw_metadata": stmt.excluded.raw_metadata,
        },
    )
    db.execute(stmt)
    return (
        db.query(DialedInReport.id)
        .filter(
            DialedInReport.filename == values["filename"],
            DialedInReport.report_type == values["report_type"],
            DialedInReport.report_date == values["report_date"],
        )
        .scalar()
    )


def load_active_reports(db: Session, report_date: date) -> List[DialedInReport]:
    return (
        db.query(DialedInReport)
        .filter(
            DialedInReport.report_date == report_date,
            DialedInReport.ingestion_status.in_(ACTIVE_STATUSES),
        )
        .order_by(DialedInReport.created_at)
        .all()
    )


def mark_completed(db: Session, record_ids: Iterable[str], processed_at: Optional[datetime] = None) -> int:
    ids = list(dict.fromkeys(record_ids))
    if not ids:
        return 0
    return (
        db.query(DialedInReport)
        .filter(
            DialedInReport.id.in_(ids),
            DialedInReport.ingestion_status.in_(ACTIVE_STATUSES),
        )
        .update(
            {"ingestion_status": STATUS_COMPLETED, "processed_at": processed_at or datetime.utcnow()},
            synchronize_session=False,
        )
    )


class ReportStore:
    def __init__(
        self,
        session_factory=SessionLocal,
        parser: RowParser = parse_report,
        archive: Optional[ArchiveService] = None,
    ) -> None:
        self.session_factory = session_factory
        self.parser = parser
        self.archive = archive if archive is not None else ArchiveService()

    async def ingest(self, data: bytes, filename: str, source: str) -> IngestResult:
        if source not in INGESTION_SOURCES:
            raise ValueError(f"Unknown ingestion source: {source}")
        report_type = classify(filename)
        if report_type is None:
            raise ClassificationError(f"Unrecognized report type for file: {filename}", filename=filename)

        start, end = extract_date_range(filename)
        report_date = report_date_for(filename)
        log_extra = {"file_name": filename, "report_type": report_type.value, "report_date": report_date.isoformat()}

        archived: ArchiveResult = await self.archive.archive(data, report_date, report_type.value, filename)

        values: Dict[str, Any] = {
            "filename": filename,
            "report_type": report_type.value,
            "report_date": report_date,
            "date_range_start": start,
            "date_range_end": end,
            "raw_file_url": archived.raw_file_url,
            "s3_file_key": archived.s3_file_key,
            "ingestion_source": source,
        }

        try:
            parsed: ParsedReport = self.parser(data, filename)
            if parsed.report_type != report_type:
                raise ParseError(
                    f"Parser returned {parsed.report_type.value} rows for a {report_type.value} file",
                    filename=filename,
                )
        except Exception as exc:
            error = exc if isinstance(exc, ParseError) else ParseError(str(exc) or "Parse error", filename=filename)
            self._write(
                {
                    **values,
                    "row_count": 0,
                    "ingestion_status": STATUS_FAILED,
                    "error_message": str(error),
                    "raw_metadata": {},
                },
                log_extra,
            )
            logger.warning("report parse failed", extra=log_extra)
            raise ParseError(f"Failed to parse {filename}: {error}", filename=filename) from exc

        record_id = self._write(
            {
                **values,
                "row_count": parsed.row_count,
                "ingestion_status": STATUS_PROCESSING,
                "error_message": None,
                "raw_metadata": parsed.to_metadata(),
            },
            log_extra,
        )
        logger.info("report stored", extra={**log_extra, "record_id": record_id, "row_count": parsed.row_count})
        return IngestResult(
            record_id=record_id,
            filename=filename,
            report_type=report_type.value,
            report_date=report_date,
            row_count=parsed.row_count,
        )

    def _write(self, values: Dict[str, Any], log_extra: Dict[str, Any]) -> str:
        with self.session_factory() as db:
            try:
                record_id = upsert_report(db, values)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("report store write failed", extra=log_extra)
                raise StoreError(f"Failed to store report metadata: {exc}", filename=values["filename"]) from exc
        return record_id
