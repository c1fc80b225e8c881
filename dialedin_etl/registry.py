from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from dialedin_etl.config import settings


class ReportType(str, enum.Enum):
    AGENT_SUMMARY = "AgentSummary"
    AGENT_SUMMARY_CAMPAIGN = "AgentSummaryCampaign"
    AGENT_SUMMARY_SUBCAMPAIGN = "AgentSummarySubcampaign"
    AGENT_ANALYSIS = "AgentAnalysis"
    AGENT_PAUSE_TIME = "AgentPauseTime"
    CALLS_PER_HOUR = "CallsPerHour"
    CAMPAIGN_CALL_LOG = "CampaignCallLog"
    CAMPAIGN_SUMMARY = "CampaignSummary"
    PRODUCTION_REPORT = "ProductionReport"
    PRODUCTION_REPORT_SUBCAMPAIGN = "ProductionReportSubcampaign"
    SHIFT_REPORT = "ShiftReport"
    SUBCAMPAIGN_SUMMARY = "SubcampaignSummary"


# Canonical order used for checklists.
ALL_REPORT_TYPES: List[ReportType] = list(ReportType)

# Carries per-agent aggregate figures; partial computation is gated on it.
KEY_REPORT_TYPE = ReportType.AGENT_SUMMARY

DATE_RANGE_PATTERN = re.compile(r"(\d{2}-\d{2}-\d{4})_(\d{2}-\d{2}-\d{4})")


@dataclass(frozen=True)
class ColumnSpec:
    header: str
    field: str
    kind: str = "num"


@dataclass(frozen=True)
class ReportTypeConfig:
    report_type: ReportType
    pattern: str
    collection: str
    row_key: str
    columns: List[ColumnSpec]
    require_non_empty: Tuple[str, ...] = ()
    dynamic_dispositions: bool = False
    fixed_headers: frozenset = field(default_factory=frozenset)

    def matches(self, filename: str) -> bool:
        return re.search(self.pattern, filename, re.IGNORECASE) is not None


_AGENT_METRICS = [
    ColumnSpec("Dialed", "dialed"),
    ColumnSpec("Connects", "connects"),
    ColumnSpec("Contacts", "contacts"),
    ColumnSpec("Hours Worked", "hours_worked"),
    ColumnSpec("Sale/Lead/App", "transfers"),
    ColumnSpec("Connects per Hour", "connects_per_hour"),
    ColumnSpec("S-L-A/HR", "sla_hr"),
    ColumnSpec("Conversion Rate", "conversion_rate_pct", "pct"),
    ColumnSpec("Talk Time", "talk_time_min", "minutes"),
    ColumnSpec("Avg Talk Time", "avg_talk_time_min", "minutes"),
    ColumnSpec("Wait Time", "wait_time_min", "minutes"),
    ColumnSpec("Avg Wait Time", "avg_wait_time_min", "minutes"),
    ColumnSpec("Wrap Up Time", "wrap_time_min", "minutes"),
    ColumnSpec("Avg Wrap Up Time", "avg_wrap_time_min", "minutes"),
    ColumnSpec("Logged In Time", "logged_in_time_min", "minutes"),
]

PRODUCTION_FIXED_HEADERS = frozenset(
    [
        "Rep",
        "Skill",
        "Man Hours",
        "Logged In Time",
        "Connects",
        "Contacts",
        "Contacts/ManHour",
        "Sale/Lead/App",
        "Sales/ManHour",
    ]
)


# Order matters: the most specific pattern of each family is checked first.
REPORT_TYPES: List[ReportTypeConfig] = [
    ReportTypeConfig(
        report_type=ReportType.AGENT_SUMMARY_SUBCAMPAIGN,
        pattern=r"AgentSummarySubcampaign",
        collection="agent_summary_subcampaign",
        row_key="Rep",
        columns=[
            ColumnSpec("Campaign", "campaign", "str"),
            ColumnSpec("Subcampaign", "subcampaign", "str"),
            ColumnSpec("Rep", "rep", "str"),
            *_AGENT_METRICS,
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.AGENT_SUMMARY_CAMPAIGN,
        pattern=r"AgentSummaryCampaign",
        collection="agent_summary",
        row_key="Rep",
        columns=[ColumnSpec("Rep", "rep", "str"), *_AGENT_METRICS],
    ),
    ReportTypeConfig(
        report_type=ReportType.AGENT_SUMMARY,
        pattern=r"AgentSummary_",
        collection="agent_summary",
        row_key="Rep",
        columns=[ColumnSpec("Rep", "rep", "str"), ColumnSpec("Team", "team", "str"), *_AGENT_METRICS],
    ),
    ReportTypeConfig(
        report_type=ReportType.AGENT_ANALYSIS,
        pattern=r"AgentAnalysis",
        collection="agent_analysis",
        row_key="Rep",
        columns=[
            ColumnSpec("Date", "date", "str"),
            ColumnSpec("Rep", "rep", "str"),
            ColumnSpec("Campaign", "campaign", "str"),
            ColumnSpec("Hours Worked", "hours_worked"),
            ColumnSpec("Contacts", "contacts"),
            ColumnSpec("Connects", "connects"),
            ColumnSpec("Connects per Hour", "connects_per_hour"),
            ColumnSpec("Conversion Rate", "conversion_rate_pct", "pct"),
            ColumnSpec("Conversion Factor", "conversion_factor"),
            ColumnSpec("Sale/Lead/App", "transfers"),
            ColumnSpec("S-L-A/HR", "sla_hr"),
            ColumnSpec("Call Backs", "call_backs"),
            ColumnSpec("Avg Talk Time", "avg_talk_time_min", "minutes"),
            ColumnSpec("Avg Wait Time", "avg_wait_time_min", "minutes"),
            ColumnSpec("Time Avail", "time_avail_min", "minutes"),
            ColumnSpec("Time Paused", "time_paused_min", "minutes"),
            ColumnSpec("Talk Time", "talk_time_min", "minutes"),
            ColumnSpec("Wrap Up Time", "wrap_time_min", "minutes"),
            ColumnSpec("Logged In Time", "logged_in_time_min", "minutes"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.AGENT_PAUSE_TIME,
        pattern=r"AgentPauseTime",
        collection="agent_pause_time",
        row_key="Rep",
        columns=[
            ColumnSpec("Rep", "rep", "str"),
            ColumnSpec("Campaign", "campaign", "str"),
            ColumnSpec("Session Login Time", "session_login_time", "str"),
            ColumnSpec("Session Logout Time", "session_logout_time", "str"),
            ColumnSpec("Pause Time", "pause_time", "str"),
            ColumnSpec("Break Code", "break_code", "str"),
            ColumnSpec("UnPause Time", "unpause_time", "str"),
            ColumnSpec("Time Paused", "time_paused", "str"),
            ColumnSpec("Session ManHours", "session_man_hours"),
        ],
    ),
    # SubcampaignSummary exports carry an extra leading "S-L-A Rate Value"
    # column, so every header sits one position left of its data.
    ReportTypeConfig(
        report_type=ReportType.SUBCAMPAIGN_SUMMARY,
        pattern=r"SubcampaignSummary",
        collection="subcampaign",
        row_key="Period",
        require_non_empty=("Campaign",),
        columns=[
            ColumnSpec("S-L-A Rate Value", "period", "str"),
            ColumnSpec("Period", "campaign", "str"),
            ColumnSpec("Campaign", "subcampaign", "str"),
            ColumnSpec("Subcampaign", "total_leads"),
            ColumnSpec("Total Leads", "dialed"),
            ColumnSpec("Man Hours", "connects"),
            ColumnSpec("Connects", "contacts"),
            ColumnSpec("Connects per Hour", "transfers"),
            ColumnSpec("Avg Attempts", "man_hours"),
            ColumnSpec("S-L-A/HR", "connect_rate_pct", "pct"),
            ColumnSpec("Connect Rate", "conversion_rate_pct", "pct"),
            ColumnSpec("Conversion Factor", "operator_disconnects"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.CAMPAIGN_CALL_LOG,
        pattern=r"CampaignCallLog",
        collection="campaign_call_log",
        row_key="Call Status",
        columns=[
            ColumnSpec("Call Status", "call_status", "str"),
            ColumnSpec("Description", "description", "str"),
            ColumnSpec("Calls", "calls"),
            ColumnSpec("Percent", "percent", "pct"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.CAMPAIGN_SUMMARY,
        pattern=r"CampaignSummary",
        collection="campaign_summary",
        row_key="Period",
        columns=[
            ColumnSpec("Period", "period", "str"),
            ColumnSpec("Campaign", "campaign", "str"),
            ColumnSpec("Campaign Type", "campaign_type", "str"),
            ColumnSpec("Lines per Agent", "lines_per_agent"),
            ColumnSpec("Total Leads", "total_leads"),
            ColumnSpec("Available", "available"),
            ColumnSpec("Dialed", "dialed"),
            ColumnSpec("Dials per Hr", "dials_per_hr"),
            ColumnSpec("Avg Attempts", "avg_attempts"),
            ColumnSpec("Reps", "reps"),
            ColumnSpec("Man Hours", "man_hours"),
            ColumnSpec("Logged In Time", "logged_in_time_min", "minutes"),
            ColumnSpec("Connects", "connects"),
            ColumnSpec("Connect %", "connect_pct", "pct"),
            ColumnSpec("Contacts", "contacts"),
            ColumnSpec("Contact%", "contact_pct", "pct"),
            ColumnSpec("Hangups", "hangups"),
            ColumnSpec("Connects per Hour", "connects_per_hour"),
            ColumnSpec("Conversion Rate", "conversion_rate_pct", "pct"),
            ColumnSpec("Conversion Factor", "conversion_factor"),
            ColumnSpec("Sale/Lead/App", "transfers"),
            ColumnSpec("S-L-A/HR", "sla_hr"),
            ColumnSpec("NoAns Rate", "noans_rate_pct", "pct"),
            ColumnSpec("Norb Rate", "norb_rate_pct", "pct"),
            ColumnSpec("Drop Rate", "drop_rate_pct", "pct"),
            ColumnSpec("Avg Wait Time", "avg_wait_time_min", "minutes"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.PRODUCTION_REPORT_SUBCAMPAIGN,
        pattern=r"ProductionReportSubcampaign",
        collection="production_subcampaign",
        row_key="Subcampaign",
        columns=[
            ColumnSpec("Subcampaign", "subcampaign", "str"),
            ColumnSpec("Ans. Machine", "ans_machine"),
            ColumnSpec("Inbound Voicemail", "inbound_voicemail"),
            ColumnSpec("Connects", "connects"),
            ColumnSpec("Contacts", "contacts"),
            ColumnSpec("SalesCount", "sales_count"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.PRODUCTION_REPORT,
        pattern=r"ProductionReport_",
        collection="production",
        row_key="Rep",
        dynamic_dispositions=True,
        fixed_headers=PRODUCTION_FIXED_HEADERS,
        columns=[
            ColumnSpec("Rep", "rep", "str"),
            ColumnSpec("Skill", "skill", "str"),
            ColumnSpec("Man Hours", "man_hours"),
            ColumnSpec("Logged In Time", "logged_in_time_min", "minutes"),
            ColumnSpec("Connects", "connects"),
            ColumnSpec("Contacts", "contacts"),
            ColumnSpec("Sale/Lead/App", "transfers"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.CALLS_PER_HOUR,
        pattern=r"CallsPerHour",
        collection="calls_per_hour",
        row_key="Hour",
        columns=[
            ColumnSpec("Hour", "hour", "str"),
            ColumnSpec("Total Calls", "total_calls"),
            ColumnSpec("Connects", "connects"),
            ColumnSpec("Contacts", "contacts"),
            ColumnSpec("Sale/Lead/App", "transfers"),
            ColumnSpec("Conversion Rate", "conversion_rate_pct", "pct"),
            ColumnSpec("Inbound", "inbound"),
            ColumnSpec("Inbound%", "inbound_pct", "pct"),
            ColumnSpec("Abandoned Calls", "abandoned_calls"),
            ColumnSpec("Abandon Rate", "abandon_rate_pct", "pct"),
            ColumnSpec("Outbound", "outbound"),
            ColumnSpec("Outbound%", "outbound_pct", "pct"),
            ColumnSpec("Dropped", "dropped"),
            ColumnSpec("Drop Rate", "drop_rate_pct", "pct"),
            ColumnSpec("Talk Time", "talk_time_min", "minutes"),
            ColumnSpec("Avg Hold Time", "avg_hold_time_min", "minutes"),
            ColumnSpec("Avg Wait Time", "avg_wait_time_min", "minutes"),
            ColumnSpec("Contact%", "contact_pct", "pct"),
        ],
    ),
    ReportTypeConfig(
        report_type=ReportType.SHIFT_REPORT,
        pattern=r"ShiftReport",
        collection="shift_report",
        row_key="Date",
        columns=[
            ColumnSpec("Date", "date", "str"),
            ColumnSpec("Campaign", "campaign", "str"),
            ColumnSpec("Call Status", "call_status", "str"),
            ColumnSpec("Description", "description", "str"),
            ColumnSpec("Type", "type", "str"),
            ColumnSpec("Calls", "calls"),
            ColumnSpec("Percent", "percent", "pct"),
        ],
    ),
]

_BY_TYPE: Dict[ReportType, ReportTypeConfig] = {c.report_type: c for c in REPORT_TYPES}


def get_config(report_type: ReportType) -> ReportTypeConfig:
    return _BY_TYPE[ReportType(report_type)]


def classify(filename: str) -> Optional[ReportType]:
    for config in REPORT_TYPES:
        if config.matches(filename):
            return config.report_type
    return None


def extract_date_range(filename: str) -> Tuple[Optional[date], Optional[date]]:
    match = DATE_RANGE_PATTERN.search(filename)
    if not match:
        return None, None
    try:
        start = datetime.strptime(match.group(1), "%m-%d-%Y").date()
        end = datetime.strptime(match.group(2), "%m-%d-%Y").date()
    except ValueError:
        return None, None
    return start, end


def report_date_for(filename: str, today: Optional[date] = None) -> date:
    """A report covering a range is filed under the last day of that range."""
    _, end = extract_date_range(filename)
    if end:
        return end
    return today or datetime.now(tz=ZoneInfo(settings.app_timezone)).date()
