from __future__ import annotations

import asyncio
from datetime import date

import pytest

from conftest import FILENAMES, agent_rows, payload

from dialedin_etl.checklist import build_checklist, get_checklist_status
from dialedin_etl.errors import ParseError
from dialedin_etl.registry import ALL_REPORT_TYPES, ReportType


REPORT_DATE = date(2025, 2, 1)


def test_build_checklist_uses_canonical_order():
    status = build_checklist(["ShiftReport", "AgentSummary", "ShiftReport"])
    assert status.received == [ReportType.AGENT_SUMMARY, ReportType.SHIFT_REPORT]
    assert len(status.missing) == 10
    assert not status.complete
    assert status.has(ReportType.AGENT_SUMMARY)


def test_build_checklist_complete():
    status = build_checklist(t.value for t in ALL_REPORT_TYPES)
    assert status.complete
    assert status.missing == []
    assert status.to_dict()["received_count"] == 12


def test_checklist_excludes_failed_records(store, session_factory):
    asyncio.run(store.ingest(payload(agent_rows(2)), FILENAMES[ReportType.AGENT_SUMMARY], "upload"))
    asyncio.run(store.ingest(payload([]), FILENAMES[ReportType.SHIFT_REPORT], "upload"))
    asyncio.run(store.ingest(payload([]), FILENAMES[ReportType.CALLS_PER_HOUR], "automated"))
    with pytest.raises(ParseError):
        asyncio.run(store.ingest(b"\x00", FILENAMES[ReportType.PRODUCTION_REPORT], "upload"))

    with session_factory() as db:
        status = get_checklist_status(db, REPORT_DATE)
        other_day = get_checklist_status(db, date(2025, 2, 2))

    assert status.received_count == 3
    assert status.received_count + len(status.missing) == status.total_count == 12
    assert ReportType.PRODUCTION_REPORT in status.missing
    assert other_day.received_count == 0
    assert not other_day.complete
