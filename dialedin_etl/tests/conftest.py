from __future__ import annotations

import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dialedin_etl.db.models import Base
from dialedin_etl.errors import ParseError
from dialedin_etl.parsing import ParsedReport
from dialedin_etl.reconcile import Reconciler
from dialedin_etl.registry import ReportType, classify
from dialedin_etl.services.archive import ArchiveResult
from dialedin_etl.store import ReportStore


FIXTURES = Path(__file__).resolve().parent / "fixtures"

DAY = "02-01-2025_02-01-2025"

FILENAMES = {
    ReportType.AGENT_SUMMARY: f"AgentSummary_{DAY}.xls",
    ReportType.AGENT_SUMMARY_CAMPAIGN: f"AgentSummaryCampaign_{DAY}.xls",
    ReportType.AGENT_SUMMARY_SUBCAMPAIGN: f"AgentSummarySubcampaign_{DAY}.xls",
    ReportType.AGENT_ANALYSIS: f"AgentAnalysis_{DAY}.xls",
    ReportType.AGENT_PAUSE_TIME: f"AgentPauseTime_{DAY}.xls",
    ReportType.CALLS_PER_HOUR: f"CallsPerHour_{DAY}.xls",
    ReportType.CAMPAIGN_CALL_LOG: f"CampaignCallLog_{DAY}.xls",
    ReportType.CAMPAIGN_SUMMARY: f"CampaignSummary_{DAY}.xls",
    ReportType.PRODUCTION_REPORT: f"ProductionReport_{DAY}.xls",
    ReportType.PRODUCTION_REPORT_SUBCAMPAIGN: f"ProductionReportSubcampaign_{DAY}.xls",
    ReportType.SHIFT_REPORT: f"ShiftReport_{DAY}.xls",
    ReportType.SUBCAMPAIGN_SUMMARY: f"SubcampaignSummary_{DAY}.xls",
}


def load_fixture(name: str):
    with open(FIXTURES / f"{name}.json", "r", encoding="utf-8") as f:
        return json.load(f)


def agent_row(rep: str, transfers: int = 5, hours: float = 6.0, dialed: int = 400) -> dict:
    return {
        "rep": rep,
        "team": "Blue",
        "dialed": dialed,
        "connects": 100,
        "contacts": 50,
        "hours_worked": hours,
        "transfers": transfers,
        "connects_per_hour": 100 / hours if hours else 0.0,
        "sla_hr": transfers / hours if hours else 0.0,
        "conversion_rate_pct": 10.0,
        "talk_time_min": 120.0,
        "avg_talk_time_min": 1.2,
        "wait_time_min": 60.0,
        "avg_wait_time_min": 0.6,
        "wrap_time_min": 10.0,
        "avg_wrap_time_min": 0.1,
        "logged_in_time_min": hours * 60,
    }


def agent_rows(count: int) -> list:
    return [agent_row(f"Agent {i:02d}") for i in range(count)]


def payload(rows) -> bytes:
    return json.dumps(rows).encode("utf-8")


def fake_parser(data: bytes, filename: str) -> ParsedReport:
    """Files in tests carry their rows as JSON; anything else is malformed."""
    report_type = classify(filename)
    try:
        rows = json.loads(data.decode("utf-8"))
    except ValueError as exc:
        raise ParseError(f"not a report: {exc}", filename=filename) from exc
    return ParsedReport(report_type=report_type, rows=rows)


class DummyArchive:
    def __init__(self) -> None:
        self.calls = []

    async def archive(self, data, report_date, report_type, filename):
        self.calls.append((report_date, report_type, filename))
        return ArchiveResult(raw_file_url=f"https://files.test/{filename}", s3_file_key=None)


class DummyNotifier:
    def __init__(self) -> None:
        self.calls = []

    async def notify(self, report_date, result, is_partial):
        self.calls.append((report_date, is_partial))


class FailingNotifier:
    async def notify(self, report_date, result, is_partial):
        raise RuntimeError("slack is down")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def notifier():
    return DummyNotifier()


@pytest.fixture
def store(session_factory):
    return ReportStore(session_factory=session_factory, parser=fake_parser, archive=DummyArchive())


@pytest.fixture
def reconciler(session_factory, notifier):
    return Reconciler(session_factory=session_factory, notifier=notifier)
