from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from dialedin_etl.db.models import DailyKpi


def find_previous_kpis(db: Session, report_date: date) -> Optional[DailyKpi]:
    return (
        db.query(DailyKpi)
        .filter(DailyKpi.report_date < report_date)
        .order_by(DailyKpi.report_date.desc())
        .limit(1)
        .one_or_none()
    )


def enrich_with_delta(kpis: Dict[str, Any], previous: Optional[DailyKpi]) -> Dict[str, Any]:
    enriched = dict(kpis)
    enriched.setdefault("prev_day_transfers", None)
    enriched.setdefault("prev_day_tph", None)
    enriched.setdefault("delta_transfers", None)
    enriched.setdefault("delta_tph", None)
    if previous is None:
        return enriched

    prev_transfers = previous.total_transfers or 0
    prev_tph = previous.transfers_per_hour or 0.0
    enriched["prev_day_transfers"] = prev_transfers
    enriched["prev_day_tph"] = prev_tph
    enriched["delta_transfers"] = (kpis.get("total_transfers") or 0) - prev_transfers
    enriched["delta_tph"] = round((kpis.get("transfers_per_hour") or 0.0) - prev_tph, 2)
    return enriched
