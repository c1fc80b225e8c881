from __future__ import annotations

import base64
import binascii
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Body, FastAPI, File, Header, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from dialedin_etl.checklist import get_checklist_status
from dialedin_etl.config import settings
from dialedin_etl.db.models import SOURCE_AUTOMATED, SOURCE_UPLOAD, DailyKpi, DialedInReport
from dialedin_etl.db.session import SessionLocal
from dialedin_etl.errors import StoreError
from dialedin_etl.kpi import ComputationError
from dialedin_etl.pipeline import BatchResult, IngestPipeline
from dialedin_etl.reconcile import IncompleteResult
from dialedin_etl.registry import ALL_REPORT_TYPES
from dialedin_etl.services.logging import configure_logging


app = FastAPI(title=settings.app_name)
_START_TIME = datetime.utcnow()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pipeline = IngestPipeline()


@app.on_event("startup")
def startup() -> None:
    configure_logging()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/api/health")
def api_health() -> dict:
    db_ok = True
    db_ping_ms: Optional[float] = None
    try:
        with SessionLocal() as db:
            start = time.perf_counter()
            db.execute(text("select 1"))
            db_ping_ms = (time.perf_counter() - start) * 1000
    except Exception:
        db_ok = False
    return {
        "status": "ok",
        "db_ok": db_ok,
        "db_ping_ms": db_ping_ms,
        "uptime_seconds": (datetime.utcnow() - _START_TIME).total_seconds(),
    }


@app.post("/api/dialedin/upload")
async def api_upload(files: List[UploadFile] = File(...)) -> Dict[str, Any]:
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    payload = [(f.filename or "", await f.read()) for f in files]
    return _batch_response(await _run_pipeline(payload, SOURCE_UPLOAD))


@app.post("/api/dialedin/ingest")
async def api_ingest(
    payload: Dict[str, Any] = Body(...),
    x_api_key: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    if not settings.ingest_api_key or x_api_key != settings.ingest_api_key:
        raise HTTPException(status_code=401, detail="Unauthorized")
    attachments = list(payload.get("attachments") or [])
    if not attachments and payload.get("filename") and payload.get("data"):
        attachments.append({"filename": payload["filename"], "data": payload["data"]})
    if not attachments:
        raise HTTPException(status_code=400, detail="No attachments provided")

    files: List[Tuple[str, bytes]] = []
    for attachment in attachments:
        try:
            files.append((str(attachment["filename"]), base64.b64decode(attachment["data"], validate=True)))
        except (KeyError, TypeError, binascii.Error) as exc:
            raise HTTPException(status_code=400, detail=f"Invalid attachment: {exc}") from exc
    return _batch_response(await _run_pipeline(files, SOURCE_AUTOMATED))


@app.get("/api/dialedin/checklist")
def api_checklist(date: Optional[str] = None) -> Dict[str, Any]:
    report_date = _parse_date(date)
    with SessionLocal() as db:
        checklist = get_checklist_status(db, report_date)
        reports = (
            db.query(DialedInReport)
            .filter(DialedInReport.report_date == report_date)
            .order_by(DialedInReport.created_at)
            .all()
        )
        kpi = db.query(DailyKpi).filter(DailyKpi.report_date == report_date).one_or_none()
    received = {r.report_type: r for r in reports if r.ingestion_status != "failed"}
    return {
        "date": report_date.isoformat(),
        **checklist.to_dict(),
        "computed": kpi is not None,
        "computed_at": kpi.updated_at.isoformat() if kpi else None,
        "is_partial": kpi.is_partial if kpi else None,
        "reports": [
            {
                "type": t.value,
                "received": t.value in received,
                "rows": received[t.value].row_count if t.value in received else None,
                "received_at": received[t.value].created_at.isoformat() if t.value in received else None,
            }
            for t in ALL_REPORT_TYPES
        ],
    }


@app.get("/api/dialedin/kpis")
def api_kpis(date: Optional[str] = None) -> Dict[str, Any]:
    report_date = _parse_date(date)
    with SessionLocal() as db:
        kpi = db.query(DailyKpi).filter(DailyKpi.report_date == report_date).one_or_none()
    if not kpi:
        raise HTTPException(status_code=404, detail="No KPIs computed for this date")
    return {
        column: _jsonable(getattr(kpi, column))
        for column in DailyKpi.__table__.columns.keys()
    }


@app.get("/api/dialedin/reports")
def api_reports(date: Optional[str] = None) -> List[dict]:
    report_date = _parse_date(date)
    with SessionLocal() as db:
        reports = (
            db.query(DialedInReport)
            .filter(DialedInReport.report_date == report_date)
            .order_by(DialedInReport.created_at)
            .all()
        )
    return [_report_to_dict(r) for r in reports]


async def _run_pipeline(files: List[Tuple[str, bytes]], source: str) -> BatchResult:
    try:
        return await pipeline.run(files, source)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail={"error": exc.kind, "message": str(exc)}) from exc
    except ComputationError as exc:
        raise HTTPException(status_code=422, detail={"error": "computation_error", "message": str(exc)}) from exc


def _batch_response(batch: BatchResult) -> Dict[str, Any]:
    if not batch.processed:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No valid report files could be processed",
                "files": [f.to_dict() for f in batch.files],
            },
        )
    dates = []
    for report_date, outcome in batch.reconciled.items():
        entry: Dict[str, Any] = {
            "report_date": report_date.isoformat(),
            "computed": not isinstance(outcome, IncompleteResult),
            "checklist": outcome.checklist.to_dict(),
        }
        if not isinstance(outcome, IncompleteResult):
            kpis = outcome.result.daily_kpis
            entry["is_partial"] = outcome.is_partial
            entry["summary"] = {
                "agents": kpis.get("total_agents"),
                "transfers": kpis.get("total_transfers"),
                "tph": kpis.get("transfers_per_hour"),
                "anomalies": len(outcome.result.anomalies),
            }
        dates.append(entry)
    return {
        "success": True,
        "processed": batch.processed,
        "skipped": len(batch.files) - batch.processed,
        "errors": batch.errors or None,
        "files": [f.to_dict() for f in batch.files],
        "dates": dates,
    }


def _report_to_dict(report: DialedInReport) -> dict:
    return {
        "id": report.id,
        "filename": report.filename,
        "report_type": report.report_type,
        "report_date": report.report_date.isoformat(),
        "date_range_start": report.date_range_start.isoformat() if report.date_range_start else None,
        "date_range_end": report.date_range_end.isoformat() if report.date_range_end else None,
        "raw_file_url": report.raw_file_url,
        "s3_file_key": report.s3_file_key,
        "row_count": report.row_count,
        "ingestion_source": report.ingestion_source,
        "ingestion_status": report.ingestion_status,
        "error_message": report.error_message,
        "processed_at": report.processed_at.isoformat() if report.processed_at else None,
        "created_at": report.created_at.isoformat(),
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _parse_date(value: Optional[str]) -> date:
    if not value:
        raise HTTPException(status_code=400, detail="date parameter required")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format (expected YYYY-MM-DD)") from exc
