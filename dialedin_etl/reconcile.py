from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dialedin_etl.checklist import ChecklistStatus, build_checklist, get_checklist_status
from dialedin_etl.db.models import DialedInReport
from dialedin_etl.db.session import SessionLocal
from dialedin_etl.delta import enrich_with_delta, find_previous_kpis
from dialedin_etl.errors import StoreError
from dialedin_etl.kpi import ETLResult, KpiComputation, process_day
from dialedin_etl.parsing import MergedRows, ParsedReport
from dialedin_etl.registry import KEY_REPORT_TYPE
from dialedin_etl.results import DailyResultStore
from dialedin_etl.services.notifier import SlackNotifier
from dialedin_etl.store import load_active_reports, mark_completed


logger = logging.getLogger(__name__)


@dataclass
class IncompleteResult:
    report_date: date
    checklist: ChecklistStatus
    incomplete: bool = True


@dataclass
class ReconcileResult:
    report_date: date
    checklist: ChecklistStatus
    is_partial: bool
    result: ETLResult
    record_ids: List[str] = field(default_factory=list)
    incomplete: bool = False


def merge_reports(records: Iterable[DialedInReport]) -> MergedRows:
    """Fold the stored rows of every record into one row set per report type."""
    merged = MergedRows()
    for record in records:
        if not record.raw_metadata:
            continue
        merged.add(ParsedReport.from_metadata(record.report_type, record.raw_metadata))
    return merged


class Reconciler:
    def __init__(
        self,
        session_factory=SessionLocal,
        compute: KpiComputation = process_day,
        notifier: Optional[SlackNotifier] = None,
        result_store: Optional[DailyResultStore] = None,
    ) -> None:
        self.session_factory = session_factory
        self.compute = compute
        self.notifier = notifier if notifier is not None else SlackNotifier()
        self.result_store = result_store if result_store is not None else DailyResultStore()

    async def reconcile(
        self, report_date: date, record_ids: Iterable[str] = ()
    ) -> Union[ReconcileResult, IncompleteResult]:
        batch_ids = list(record_ids)
        log_extra = {"report_date": report_date.isoformat()}

        with self.session_factory() as db:
            try:
                checklist = get_checklist_status(db, report_date)
                if not checklist.complete and not checklist.has(KEY_REPORT_TYPE):
                    mark_completed(db, batch_ids)
                    db.commit()
                    logger.info(
                        "waiting on key report, computation skipped",
                        extra={**log_extra, "row_count": checklist.received_count},
                    )
                    return IncompleteResult(report_date=report_date, checklist=checklist)

                self._lock_date(db, report_date)
                records = load_active_reports(db, report_date)
                # Records committed since the first checklist read are part of this pass.
                checklist = build_checklist(r.report_type for r in records)
                is_partial = not checklist.complete

                result = self.compute(merge_reports(records), report_date)
                result.daily_kpis = enrich_with_delta(result.daily_kpis, find_previous_kpis(db, report_date))
                self.result_store.save(db, report_date, result, is_partial)

                # Only the records merged in this pass.
                reconciled_ids = [r.id for r in records]
                mark_completed(db, reconciled_ids, datetime.utcnow())
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("reconciliation store failure", extra=log_extra)
                raise StoreError(f"Failed to reconcile {report_date.isoformat()}: {exc}") from exc

        logger.info("daily kpis computed", extra={**log_extra, "is_partial": is_partial})
        await self._notify(report_date, result, is_partial)
        return ReconcileResult(
            report_date=report_date,
            checklist=checklist,
            is_partial=is_partial,
            result=result,
            record_ids=reconciled_ids,
        )

    def _lock_date(self, db: Session, report_date: date) -> None:
        """Serializes passes for one date on Postgres; released with the transaction."""
        if db.get_bind().dialect.name != "postgresql":
            return
        db.execute(
            text("select pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"dialedin:{report_date.isoformat()}"},
        )

    async def _notify(self, report_date: date, result: ETLResult, is_partial: bool) -> None:
        try:
            await self.notifier.notify(report_date, result, is_partial)
        except Exception:
            logger.exception("notification failed", extra={"report_date": report_date.isoformat()})
