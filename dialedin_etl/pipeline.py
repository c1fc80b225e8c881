from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple, Union

from dialedin_etl.errors import IngestError
from dialedin_etl.reconcile import IncompleteResult, Reconciler, ReconcileResult
from dialedin_etl.store import IngestResult, ReportStore


logger = logging.getLogger(__name__)


@dataclass
class FileOutcome:
    filename: str
    success: bool
    report_type: Optional[str] = None
    report_date: Optional[date] = None
    row_count: int = 0
    error_kind: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "success": self.success,
            "report_type": self.report_type,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "row_count": self.row_count,
            "error_kind": self.error_kind,
            "error": self.error,
        }


@dataclass
class BatchResult:
    files: List[FileOutcome] = field(default_factory=list)
    reconciled: Dict[date, Union[ReconcileResult, IncompleteResult]] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return sum(1 for f in self.files if f.success)

    @property
    def errors(self) -> List[str]:
        return [f.error for f in self.files if not f.success and f.error]


class IngestPipeline:
    """Ingests a batch of files, then reconciles each affected date once."""

    def __init__(self, store: Optional[ReportStore] = None, reconciler: Optional[Reconciler] = None) -> None:
        self.store = store if store is not None else ReportStore()
        self.reconciler = reconciler if reconciler is not None else Reconciler()

    async def run(self, files: Iterable[Tuple[str, bytes]], source: str) -> BatchResult:
        batch = BatchResult()
        ids_by_date: Dict[date, List[str]] = {}
        for filename, data in files:
            try:
                ingested: IngestResult = await self.store.ingest(data, filename, source)
            except IngestError as exc:
                batch.files.append(FileOutcome(filename=filename, success=False, error_kind=exc.kind, error=str(exc)))
                continue
            batch.files.append(
                FileOutcome(
                    filename=filename,
                    success=True,
                    report_type=ingested.report_type,
                    report_date=ingested.report_date,
                    row_count=ingested.row_count,
                )
            )
            ids_by_date.setdefault(ingested.report_date, []).append(ingested.record_id)

        for report_date, record_ids in ids_by_date.items():
            batch.reconciled[report_date] = await self.reconciler.reconcile(report_date, record_ids)
        logger.info("batch ingested", extra={"row_count": batch.processed})
        return batch
