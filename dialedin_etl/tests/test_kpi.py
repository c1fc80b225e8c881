from __future__ import annotations

from datetime import date

import pytest

from conftest import agent_row, agent_rows, load_fixture

from dialedin_etl.kpi import ComputationError, disposition_key, process_day
from dialedin_etl.parsing import MergedRows, ParsedReport
from dialedin_etl.registry import ReportType


REPORT_DATE = date(2025, 2, 1)


def _merged(**collections) -> MergedRows:
    merged = MergedRows()
    for name, rows in collections.items():
        merged.add(ParsedReport(ReportType[name], rows))
    return merged


def test_disposition_key():
    assert disposition_key("Dead Air") == "dead_air"
    assert disposition_key("Ans. Machine") == "ans_machine"
    assert disposition_key("Sale/Lead") == "sale_lead"


def test_process_day_with_production():
    merged = _merged(AGENT_SUMMARY=agent_rows(3), PRODUCTION_REPORT=load_fixture("production_report"))
    result = process_day(merged, REPORT_DATE)
    kpis = result.daily_kpis

    assert kpis["total_agents"] == 3
    assert kpis["total_transfers"] == 15
    assert kpis["total_connects"] == 300
    assert kpis["dispositions"]["dead_air"] == 40
    assert kpis["dead_air_ratio"] == round(40 / 300 * 100, 2)
    assert kpis["transfer_success_rate"] == round(12 / 13 * 100, 1)
    assert kpis["distribution"]["count"] == 3

    by_name = {a["agent_name"]: a for a in result.agent_performance}
    assert by_name["Agent 00"]["skill"] == "Medicare"
    assert by_name["Agent 00"]["dead_air_ratio"] == 35.0
    assert by_name["Agent 00"]["tph_rank"] is not None

    skills = {s["skill"]: s for s in result.skill_summary}
    assert skills["Medicare"]["agent_count"] == 2
    assert skills["Medicare"]["connect_rate"] is None

    dead_air = [a for a in result.anomalies if a["anomaly_type"] == "high_dead_air"]
    assert [a["agent_name"] for a in dead_air] == ["Agent 00"]
    assert dead_air[0]["severity"] == "warning"
    assert result.raw_data["report_sources"]["ProductionReport"] == 3


def test_zero_transfer_agents_are_flagged():
    agents = agent_rows(2) + [agent_row("Idle Agent", transfers=0, hours=5.0)]
    result = process_day(_merged(AGENT_SUMMARY=agents), REPORT_DATE)
    flagged = [a for a in result.anomalies if a["anomaly_type"] == "zero_transfers"]
    assert [a["agent_name"] for a in flagged] == ["Idle Agent"]


def test_agent_summary_preferred_over_campaign_variant():
    merged = _merged(AGENT_SUMMARY=agent_rows(4), AGENT_SUMMARY_CAMPAIGN=agent_rows(2))
    assert process_day(merged, REPORT_DATE).daily_kpis["total_agents"] == 4
    merged = _merged(AGENT_SUMMARY_CAMPAIGN=agent_rows(2))
    assert process_day(merged, REPORT_DATE).daily_kpis["total_agents"] == 2


def test_shift_report_fills_missing_dispositions_only():
    shift = [
        {"call_status": "Dead Air", "calls": 999},
        {"call_status": "Voicemail", "calls": 12},
        {"call_status": "", "calls": 4},
    ]
    merged = _merged(
        AGENT_SUMMARY=agent_rows(3),
        PRODUCTION_REPORT=load_fixture("production_report"),
        SHIFT_REPORT=shift,
    )
    dispositions = process_day(merged, REPORT_DATE).daily_kpis["dispositions"]
    assert dispositions["dead_air"] == 40
    assert dispositions["voicemail"] == 12


def test_campaign_summary_feeds_raw_data():
    merged = _merged(AGENT_SUMMARY=agent_rows(1), CAMPAIGN_SUMMARY=load_fixture("campaign_summary"))
    raw = process_day(merged, REPORT_DATE).raw_data
    assert raw["campaign_aggregate"]["total_campaigns"] == 2
    assert raw["campaign_aggregate"]["total_system_dials"] == 4000
    assert raw["campaign_aggregate"]["avg_connect_rate"] == 22.5
    assert [c["campaign"] for c in raw["campaigns"]] == ["Medicare Outbound"]


def test_subcampaign_fallback_without_agents():
    subcampaign = [
        {"dialed": 800, "connects": 300, "contacts": 120, "transfers": 15, "man_hours": 30.0},
    ]
    kpis = process_day(_merged(SUBCAMPAIGN_SUMMARY=subcampaign), REPORT_DATE).daily_kpis
    assert kpis["total_agents"] == 0
    assert kpis["total_transfers"] == 15
    assert kpis["transfers_per_hour"] == 0.5


def test_no_data_raises():
    with pytest.raises(ComputationError):
        process_day(MergedRows(), REPORT_DATE)
