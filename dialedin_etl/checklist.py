from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from dialedin_etl.db.models import ACTIVE_STATUSES, DialedInReport
from dialedin_etl.registry import ALL_REPORT_TYPES, ReportType


@dataclass
class ChecklistStatus:
    received: List[ReportType] = field(default_factory=list)
    missing: List[ReportType] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing

    @property
    def received_count(self) -> int:
        return len(self.received)

    @property
    def total_count(self) -> int:
        return len(ALL_REPORT_TYPES)

    def has(self, report_type: ReportType) -> bool:
        return report_type in self.received

    def to_dict(self) -> Dict[str, Any]:
        return {
            "received": [t.value for t in self.received],
            "missing": [t.value for t in self.missing],
            "complete": self.complete,
            "received_count": self.received_count,
            "total_count": self.total_count,
        }


def build_checklist(received_types) -> ChecklistStatus:
    present = {ReportType(t) for t in received_types}
    return ChecklistStatus(
        received=[t for t in ALL_REPORT_TYPES if t in present],
        missing=[t for t in ALL_REPORT_TYPES if t not in present],
    )


def get_checklist_status(db: Session, report_date: date) -> ChecklistStatus:
    """Failed records hold their slot in storage but do not count as received."""
    rows = (
        db.query(DialedInReport.report_type)
        .filter(
            DialedInReport.report_date == report_date,
            DialedInReport.ingestion_status.in_(ACTIVE_STATUSES),
        )
        .distinct()
        .all()
    )
    return build_checklist(r[0] for r in rows)
