from __future__ import annotations

import asyncio
from datetime import date

from conftest import FILENAMES, agent_rows, fake_parser, payload

from dialedin_etl.db.models import DialedInReport
from dialedin_etl.registry import ReportType
from dialedin_etl.services.archive import ArchiveService, RawFileStore, S3Archive
from dialedin_etl.store import ReportStore


REPORT_DATE = date(2025, 2, 1)


class RaisingSink:
    def upload(self, data, report_date, report_type, filename):
        raise ConnectionError("bucket unreachable")


class RecordingSink:
    def __init__(self, ref):
        self.ref = ref
        self.calls = []

    def upload(self, data, report_date, report_type, filename):
        self.calls.append((report_date, report_type, filename))
        return self.ref


def test_archive_runs_both_sinks():
    primary = RecordingSink("https://files.test/raw.xls")
    secondary = RecordingSink("reports/2025-02-01/AgentSummary/1_raw.xls")
    result = asyncio.run(ArchiveService(primary, secondary).archive(b"x", REPORT_DATE, "AgentSummary", "raw.xls"))
    assert result.raw_file_url == "https://files.test/raw.xls"
    assert result.s3_file_key == "reports/2025-02-01/AgentSummary/1_raw.xls"
    assert primary.calls == secondary.calls == [(REPORT_DATE, "AgentSummary", "raw.xls")]


def test_sink_failure_only_clears_its_reference():
    secondary = RecordingSink("reports/key")
    result = asyncio.run(ArchiveService(RaisingSink(), secondary).archive(b"x", REPORT_DATE, "ShiftReport", "a.xls"))
    assert result.raw_file_url is None
    assert result.s3_file_key == "reports/key"


def test_unconfigured_sinks_are_skipped():
    assert RawFileStore().upload(b"x", REPORT_DATE, "ShiftReport", "a.xls") is None
    assert S3Archive().upload(b"x", REPORT_DATE, "ShiftReport", "a.xls") is None


def test_ingest_survives_archive_outage(session_factory):
    store = ReportStore(
        session_factory=session_factory,
        parser=fake_parser,
        archive=ArchiveService(RaisingSink(), RaisingSink()),
    )
    result = asyncio.run(store.ingest(payload(agent_rows(2)), FILENAMES[ReportType.AGENT_SUMMARY], "upload"))
    with session_factory() as db:
        record = db.get(DialedInReport, result.record_id)
        assert record.ingestion_status == "processing"
        assert record.raw_file_url is None
        assert record.s3_file_key is None
