from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base


Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JsonColumn = JSON().with_variant(JSONB(), "postgresql")

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
ACTIVE_STATUSES = (STATUS_PROCESSING, STATUS_COMPLETED)

SOURCE_UPLOAD = "upload"
SOURCE_AUTOMATED = "automated"
INGESTION_SOURCES = (SOURCE_UPLOAD, SOURCE_AUTOMATED)


def _uuid() -> str:
    return str(uuid.uuid4())


class DialedInReport(Base):
    __tablename__ = "dialedin_reports"

    id = Column(String, primary_key=True, default=_uuid)
    filename = Column(String, nullable=False)
    report_type = Column(String, nullable=False)
    report_date = Column(Date, nullable=False)
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)
    raw_file_url = Column(Text, nullable=True)
    s3_file_key = Column(Text, nullable=True)
    row_count = Column(Integer, nullable=True)
    ingestion_source = Column(String, default=SOURCE_UPLOAD, nullable=False)
    ingestion_status = Column(String, default=STATUS_PROCESSING, nullable=False)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    raw_metadata = Column(JsonColumn, default=dict, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("filename", "report_type", "report_date", name="uq_dialedin_reports_file_type_date"),
        Index("ix_dialedin_reports_date", "report_date"),
        Index("ix_dialedin_reports_status", "ingestion_status"),
    )


class DailyKpi(Base):
    __tablename__ = "dialedin_daily_kpis"

    id = Column(String, primary_key=True, default=_uuid)
    report_date = Column(Date, nullable=False, unique=True)
    total_agents = Column(Integer, default=0, nullable=False)
    agents_with_transfers = Column(Integer, default=0, nullable=False)
    total_dials = Column(Integer, default=0, nullable=False)
    total_connects = Column(Integer, default=0, nullable=False)
    total_contacts = Column(Integer, default=0, nullable=False)
    total_transfers = Column(Integer, default=0, nullable=False)
    total_man_hours = Column(Float, default=0, nullable=False)
    total_talk_time_min = Column(Float, default=0, nullable=False)
    total_wait_time_min = Column(Float, default=0, nullable=False)
    total_wrap_time_min = Column(Float, default=0, nullable=False)
    connect_rate = Column(Float, nullable=True)
    contact_rate = Column(Float, nullable=True)
    conversion_rate = Column(Float, nullable=True)
    transfers_per_hour = Column(Float, nullable=True)
    dials_per_hour = Column(Float, nullable=True)
    dead_air_ratio = Column(Float, nullable=True)
    hung_up_ratio = Column(Float, nullable=True)
    waste_rate = Column(Float, nullable=True)
    transfer_success_rate = Column(Float, nullable=True)
    prev_day_transfers = Column(Integer, nullable=True)
    prev_day_tph = Column(Float, nullable=True)
    delta_transfers = Column(Integer, nullable=True)
    delta_tph = Column(Float, nullable=True)
    is_partial = Column(Boolean, default=False, nullable=False)
    dispositions = Column(JsonColumn, default=dict, nullable=True)
    distribution = Column(JsonColumn, nullable=True)
    raw_data = Column(JsonColumn, default=dict, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AgentPerformance(Base):
    __tablename__ = "dialedin_agent_performance"

    id = Column(String, primary_key=True, default=_uuid)
    report_date = Column(Date, nullable=False)
    agent_name = Column(String, nullable=False)
    team = Column(String, nullable=True)
    skill = Column(String, nullable=True)
    subcampaign = Column(String, nullable=True)
    dials = Column(Integer, default=0, nullable=False)
    connects = Column(Integer, default=0, nullable=False)
    contacts = Column(Integer, default=0, nullable=False)
    transfers = Column(Integer, default=0, nullable=False)
    hours_worked = Column(Float, default=0, nullable=False)
    talk_time_min = Column(Float, default=0, nullable=False)
    wait_time_min = Column(Float, default=0, nullable=False)
    wrap_time_min = Column(Float, default=0, nullable=False)
    logged_in_time_min = Column(Float, default=0, nullable=False)
    tph = Column(Float, nullable=True)
    connects_per_hour = Column(Float, nullable=True)
    connect_rate = Column(Float, nullable=True)
    conversion_rate = Column(Float, nullable=True)
    dead_air_ratio = Column(Float, nullable=True)
    dispositions = Column(JsonColumn, default=dict, nullable=True)
    tph_rank = Column(Integer, nullable=True)
    conversion_rank = Column(Integer, nullable=True)
    dials_rank = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_dialedin_agent_performance_date", "report_date"),)


class SkillSummary(Base):
    __tablename__ = "dialedin_skill_summary"

    id = Column(String, primary_key=True, default=_uuid)
    report_date = Column(Date, nullable=False)
    skill = Column(String, nullable=False)
    subcampaign = Column(String, nullable=True)
    agent_count = Column(Integer, default=0, nullable=False)
    total_dials = Column(Integer, default=0, nullable=False)
    total_connects = Column(Integer, default=0, nullable=False)
    total_contacts = Column(Integer, default=0, nullable=False)
    total_transfers = Column(Integer, default=0, nullable=False)
    total_man_hours = Column(Float, default=0, nullable=False)
    avg_tph = Column(Float, nullable=True)
    connect_rate = Column(Float, nullable=True)
    conversion_rate = Column(Float, nullable=True)
    dispositions = Column(JsonColumn, default=dict, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_dialedin_skill_summary_date", "report_date"),)


class Anomaly(Base):
    __tablename__ = "dialedin_anomalies"

    id = Column(String, primary_key=True, default=_uuid)
    report_date = Column(Date, nullable=False)
    anomaly_type = Column(String, nullable=False)
    severity = Column(String, default="warning", nullable=False)
    agent_name = Column(String, nullable=True)
    skill = Column(String, nullable=True)
    metric_name = Column(String, nullable=True)
    metric_value = Column(Float, nullable=True)
    threshold_value = Column(Float, nullable=True)
    details = Column(JsonColumn, default=dict, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_dialedin_anomalies_date", "report_date"),)
