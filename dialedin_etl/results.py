from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.orm import Session

from dialedin_etl.config import settings
from dialedin_etl.db.models import AgentPerformance, Anomaly, DailyKpi, SkillSummary
from dialedin_etl.kpi import ETLResult
from dialedin_etl.store import upsert_statement


logger = logging.getLogger(__name__)

_KPI_COLUMNS = set(DailyKpi.__table__.columns.keys()) - {"id", "report_date", "created_at", "updated_at", "is_partial", "raw_data"}


def _columns_of(model, row: Dict[str, Any]) -> Dict[str, Any]:
    allowed = model.__table__.columns.keys()
    return {k: v for k, v in row.items() if k in allowed and k not in ("id", "created_at")}


def _reset_value(column_name: str) -> Any:
    column = DailyKpi.__table__.c[column_name]
    if column.nullable or column.default is None:
        return None
    return column.default.arg


class DailyResultStore:
    def __init__(self, batch_size: Optional[int] = None) -> None:
        self.batch_size = batch_size or settings.insert_batch_size

    def save(self, db: Session, report_date: date, result: ETLResult, is_partial: bool) -> None:
        """Overwrites everything stored for the date; the caller owns the transaction."""
        self._upsert_kpis(db, report_date, result, is_partial)
        self._replace(db, AgentPerformance, report_date, result.agent_performance)
        self._replace(db, SkillSummary, report_date, result.skill_summary)
        self._replace(db, Anomaly, report_date, result.anomalies)
        logger.info(
            "daily results stored",
            extra={
                "report_date": report_date.isoformat(),
                "is_partial": is_partial,
                "row_count": len(result.agent_performance),
            },
        )

    def _upsert_kpis(self, db: Session, report_date: date, result: ETLResult, is_partial: bool) -> None:
        now = datetime.utcnow()
        # Every KPI column is written; one the computation omits is reset.
        values = {
            column: result.daily_kpis[column] if column in result.daily_kpis else _reset_value(column)
            for column in _KPI_COLUMNS
        }
        values.update(report_date=report_date, is_partial=is_partial, raw_data=result.raw_data, updated_at=now)
        stmt = upsert_statement(db, DailyKpi).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["report_date"],
            set_={key: stmt.excluded[key] for key in values if key != "report_date"},
        )
        db.execute(stmt)

    def _replace(self, db: Session, model, report_date: date, rows: List[Dict[str, Any]]) -> None:
        db.query(model).filter(model.report_date == report_date).delete(synchronize_session=False)
        payload = [{**_columns_of(model, row), "report_date": report_date} for row in rows]
        for i in range(0, len(payload), self.batch_size):
            db.execute(insert(model), payload[i : i + self.batch_size])
