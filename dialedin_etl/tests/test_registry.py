from __future__ import annotations

from datetime import date

from conftest import FILENAMES

from dialedin_etl.registry import (
    ALL_REPORT_TYPES,
    KEY_REPORT_TYPE,
    ReportType,
    classify,
    extract_date_range,
    get_config,
    report_date_for,
)


def test_classify_every_report_type():
    for report_type, filename in FILENAMES.items():
        assert classify(filename) == report_type, filename


def test_classify_ignores_case():
    assert classify("agentsummary_02-01-2025_02-01-2025.xls") == ReportType.AGENT_SUMMARY
    assert classify("PRODUCTIONREPORTSUBCAMPAIGN_x.xls") == ReportType.PRODUCTION_REPORT_SUBCAMPAIGN


def test_classify_unknown_returns_none():
    assert classify("weekly_notes.xlsx") is None
    assert classify("") is None


def test_specific_patterns_win_over_general():
    assert classify("AgentSummaryCampaign_02-01-2025_02-01-2025.xls") == ReportType.AGENT_SUMMARY_CAMPAIGN
    assert classify("SubcampaignSummary_02-01-2025_02-01-2025.xls") == ReportType.SUBCAMPAIGN_SUMMARY
    assert classify("CampaignSummary_02-01-2025_02-01-2025.xls") == ReportType.CAMPAIGN_SUMMARY


def test_extract_date_range():
    start, end = extract_date_range("AgentSummary_01-30-2025_02-01-2025.xls")
    assert start == date(2025, 1, 30)
    assert end == date(2025, 2, 1)


def test_extract_date_range_missing_or_invalid():
    assert extract_date_range("AgentSummary.xls") == (None, None)
    assert extract_date_range("AgentSummary_13-40-2025_02-01-2025.xls") == (None, None)


def test_report_date_is_range_end():
    assert report_date_for("ShiftReport_01-25-2025_01-31-2025.xls") == date(2025, 1, 31)


def test_report_date_defaults_to_processing_day():
    today = date(2025, 3, 4)
    assert report_date_for("ShiftReport.xls", today=today) == today


def test_universe_and_key_type():
    assert len(ALL_REPORT_TYPES) == 12
    assert KEY_REPORT_TYPE == ReportType.AGENT_SUMMARY
    # AgentSummary and AgentSummaryCampaign share a row collection.
    assert get_config(ReportType.AGENT_SUMMARY).collection == get_config(ReportType.AGENT_SUMMARY_CAMPAIGN).collection
    collections = {get_config(t).collection for t in ALL_REPORT_TYPES}
    assert len(collections) == 11
